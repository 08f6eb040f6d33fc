"""
Static tables for the routing override: group names, region patterns,
service priorities, rule providers and DNS / sniffer / runtime blocks.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple


# ==================== Group Names ====================

NODE_SUFFIX = "节点"


class ProxyGroups:
    """Names of the infrastructure groups"""
    SELECT = "选择代理"
    MANUAL = "手动选择"
    FALLBACK = "故障转移"
    DIRECT = "直连"
    LANDING = "落地节点"
    LOW_COST = "低倍率节点"
    FRONT_PROXY = "前置代理"
    AD_BLOCK = "广告拦截"
    GLOBAL = "GLOBAL"


# ==================== Patterns ====================

ISP_PATTERN = "家宽|家庭|家庭宽带|商宽|商业宽带|星链|Starlink|落地"
LOW_COST_PATTERN = r"0\.[0-5]|低倍率|省流|大流量|实验性"
BASE_EXCLUDE_FILTER = "低倍率|省流|大流量"

HEALTH_CHECK_URL = "https://cp.cloudflare.com/generate_204"

QURE_ICON = "https://gcore.jsdelivr.net/gh/Koolson/Qure@master/IconSet/Color/"
SERVICE_ICON = "https://cdn.jsdelivr.net/gh/zuluion/Qure@master/IconSet/Color/"


# ==================== Regions ====================

@dataclass(frozen=True)
class RegionEntry:
    region_id: str
    pattern: str
    icon: str

    @property
    def group_name(self) -> str:
        return self.region_id + NODE_SUFFIX


# Declaration order matters: a node is counted toward the first region it matches
REGIONS: Tuple[RegionEntry, ...] = (
    RegionEntry("香港", "(?i)香港|港|HK|hk|Hong Kong|HongKong|hongkong|🇭🇰", QURE_ICON + "Hong_Kong.png"),
    RegionEntry("澳门", "(?i)澳门|MO|Macau|🇲🇴", QURE_ICON + "Macao.png"),
    RegionEntry("台湾", "(?i)台|新北|彰化|TW|Taiwan|🇹🇼", QURE_ICON + "Taiwan.png"),
    RegionEntry("新加坡", "(?i)新加坡|坡|狮城|SG|Singapore|🇸🇬", QURE_ICON + "Singapore.png"),
    RegionEntry("日本", "(?i)日本|川日|东京|大阪|泉日|埼玉|沪日|深日|JP|Japan|🇯🇵", QURE_ICON + "Japan.png"),
    RegionEntry("韩国", "(?i)KR|Korea|KOR|首尔|韩|韓|🇰🇷", QURE_ICON + "Korea.png"),
    RegionEntry("美国", "(?i)美国|美|US|United States|🇺🇸", QURE_ICON + "United_States.png"),
    RegionEntry("加拿大", "(?i)加拿大|Canada|CA|🇨🇦", QURE_ICON + "Canada.png"),
    RegionEntry("英国", "(?i)英国|United Kingdom|UK|伦敦|London|🇬🇧", QURE_ICON + "United_Kingdom.png"),
    RegionEntry("澳大利亚", "(?i)澳洲|澳大利亚|AU|Australia|🇦🇺", QURE_ICON + "Australia.png"),
    RegionEntry("德国", "(?i)德国|德|DE|Germany|🇩🇪", QURE_ICON + "Germany.png"),
    RegionEntry("法国", "(?i)法国|法|FR|France|🇫🇷", QURE_ICON + "France.png"),
    RegionEntry("俄罗斯", "(?i)俄罗斯|俄|RU|Russia|🇷🇺", QURE_ICON + "Russia.png"),
    RegionEntry("泰国", "(?i)泰国|泰|TH|Thailand|🇹🇭", QURE_ICON + "Thailand.png"),
    RegionEntry("印度", "(?i)印度|IN|India|🇮🇳", QURE_ICON + "India.png"),
    RegionEntry("马来西亚", "(?i)马来西亚|马来|MY|Malaysia|🇲🇾", QURE_ICON + "Malaysia.png"),
    RegionEntry("爱尔兰", "(?i)爱尔兰|Ireland|IE|ChatGPT|🇮🇪", QURE_ICON + "Ireland.png"),
)


# ==================== Services ====================

# Region priority per service (most preferred first)
SERVICE_PRIORITY: Dict[str, List[str]] = {
    "OpenAI": ["韩国", "日本", "美国", "新加坡", "英国", "爱尔兰", "加拿大", "法国", "澳大利亚"],
    "Claude": ["英国", "美国", "韩国", "日本", "新加坡", "爱尔兰", "加拿大", "法国", "澳大利亚"],
    "Gemini": ["美国", "英国", "韩国", "日本", "新加坡", "爱尔兰", "加拿大", "法国", "澳大利亚"],
    "Perplexity": ["美国", "英国", "韩国", "日本", "新加坡", "爱尔兰", "加拿大", "法国", "澳大利亚"],
    "Google": ["美国", "英国", "韩国", "日本", "新加坡", "爱尔兰", "加拿大", "法国", "澳大利亚"],
    "TikTok": ["美国", "日本", "韩国", "新加坡"],
    "Reddit": ["美国"],
    "JavSP": ["日本"],
}

# Candidate sources for service groups
PRIORITY = "priority"
DEFAULT = "default"
DIRECT_FIRST = "direct"


@dataclass(frozen=True)
class ServiceGroup:
    """A select group for one external service.

    ``source`` is one of PRIORITY, DEFAULT or DIRECT_FIRST. When ``members``
    is set it is used verbatim and ``source`` is ignored.
    """
    name: str
    icon: str
    source: str = DEFAULT
    members: Optional[Tuple[str, ...]] = None


SERVICE_GROUPS: Tuple[ServiceGroup, ...] = (
    # AI
    ServiceGroup("OpenAI", SERVICE_ICON + "ChatGPT.png", PRIORITY),
    ServiceGroup("Claude", SERVICE_ICON + "Claude.png", PRIORITY),
    ServiceGroup("Gemini", SERVICE_ICON + "AI.png", PRIORITY),
    ServiceGroup("Perplexity", SERVICE_ICON + "Perplexity.png", PRIORITY),
    ServiceGroup("Copilot", SERVICE_ICON + "Copilot.png"),
    ServiceGroup("Google", SERVICE_ICON + "Google_Search.png", PRIORITY),
    # Social
    ServiceGroup("Telegram", SERVICE_ICON + "Telegram.png"),
    ServiceGroup("Discord", SERVICE_ICON + "Discord.png"),
    ServiceGroup("Facebook", SERVICE_ICON + "Facebook.png"),
    ServiceGroup("Reddit", SERVICE_ICON + "Reddit.png", PRIORITY),
    # Streaming
    ServiceGroup("YouTube", SERVICE_ICON + "YouTube.png"),
    ServiceGroup("Netflix", SERVICE_ICON + "Netflix.png"),
    ServiceGroup("DisneyPlus", SERVICE_ICON + "Disney+_1.png"),
    ServiceGroup("Hulu", SERVICE_ICON + "Hulu.png"),
    ServiceGroup("HBO", SERVICE_ICON + "HBO_1.png"),
    ServiceGroup("TikTok", SERVICE_ICON + "TikTok_1.png", PRIORITY),
    ServiceGroup("Bilibili", SERVICE_ICON + "bilibili_1.png", DIRECT_FIRST),
    ServiceGroup("Spotify", SERVICE_ICON + "Spotify.png"),
    # Enterprise, direct first
    ServiceGroup("Microsoft", SERVICE_ICON + "Microsoft.png", DIRECT_FIRST),
    ServiceGroup("OneDrive", SERVICE_ICON + "OneDrive.png", DIRECT_FIRST),
    ServiceGroup("OutLook", SERVICE_ICON + "Mail.png"),
    ServiceGroup("Apple", SERVICE_ICON + "Apple_1.png", DIRECT_FIRST),
    ServiceGroup("Amazon", SERVICE_ICON + "Amazon_1.png", DIRECT_FIRST),
    ServiceGroup("Speedtest", SERVICE_ICON + "Speedtest.png", DIRECT_FIRST),
    # Games / downloads
    ServiceGroup("Steam", SERVICE_ICON + "Steam.png"),
    ServiceGroup("Ubisoft", SERVICE_ICON + "Ubisoft.png"),
    ServiceGroup("Netch", SERVICE_ICON + "Game.png"),
    ServiceGroup("PikPak", SERVICE_ICON + "Pikpak.png"),
    ServiceGroup("PayPal", SERVICE_ICON + "PayPal.png"),
    ServiceGroup("JavSP", SERVICE_ICON + "JavSP.png", PRIORITY),
    ServiceGroup("IDM", SERVICE_ICON + "Download.png",
                 members=(ProxyGroups.DIRECT, ProxyGroups.SELECT)),
    # System
    ServiceGroup(ProxyGroups.DIRECT, SERVICE_ICON + "Direct.png",
                 members=("DIRECT", ProxyGroups.SELECT)),
    ServiceGroup(ProxyGroups.AD_BLOCK, QURE_ICON + "AdBlack.png",
                 members=("REJECT", "REJECT-DROP", ProxyGroups.DIRECT)),
)


@dataclass(frozen=True)
class CandidateOverride:
    """Fixed member list used when every region in ``requires`` is active"""
    requires: Tuple[str, ...]
    members: Tuple[str, ...]


CANDIDATE_OVERRIDES: Dict[str, CandidateOverride] = {
    "Bilibili": CandidateOverride(
        requires=("台湾", "香港"),
        members=(ProxyGroups.DIRECT, "台湾" + NODE_SUFFIX, "香港" + NODE_SUFFIX),
    ),
}


# ==================== Infrastructure Icons ====================

INFRA_ICONS = {
    ProxyGroups.SELECT: QURE_ICON + "Proxy.png",
    ProxyGroups.MANUAL: "https://gcore.jsdelivr.net/gh/shindgewongxj/WHATSINStash@master/icon/select.png",
    ProxyGroups.FRONT_PROXY: QURE_ICON + "Area.png",
    ProxyGroups.LANDING: QURE_ICON + "Airport.png",
    ProxyGroups.FALLBACK: QURE_ICON + "Bypass.png",
    ProxyGroups.LOW_COST: QURE_ICON + "Lab.png",
    ProxyGroups.GLOBAL: QURE_ICON + "Global.png",
}


# ==================== Rule Providers ====================

RULE_PROVIDER_BASE = "https://cdn.jsdelivr.net/gh/zuluion/Clash-Template-Config@master/Filter/"

RULE_PROVIDER_NAMES = [
    # Ads
    "AdBlock", "AWAvenue-Ads-Rule",
    # AI
    "OpenAI", "Claude", "Gemini", "Perplexity", "Copilot",
    # Streaming
    "Netflix", "YouTube", "TikTok", "Bilibili", "Spotify", "DisneyPlus", "Hulu", "HBO",
    # Social
    "Telegram", "Discord", "Facebook", "Twitter", "Reddit",
    # Enterprise
    "Apple", "Adobe", "Amazon", "Microsoft", "OneDrive", "OutLook", "Google", "GitHub",
    # Games / downloads
    "Steam", "Ubisoft", "Netch", "PikPak", "JavSP",
    # Other
    "Speedtest", "PayPal", "Tencent", "China", "Proxy", "ProxyClient", "Direct",
    "DownLoadClient", "IDM",
]


def rule_provider(name: str) -> dict:
    return {
        "type": "http",
        "behavior": "classical",
        "interval": 3600,
        "url": f"{RULE_PROVIDER_BASE}{name}.yaml",
        "path": f"./ruleset/{name}.yaml",
    }


RULE_PROVIDERS: Dict[str, dict] = {name: rule_provider(name) for name in RULE_PROVIDER_NAMES}


# ==================== Rules ====================

QUIC_REJECT_RULE = "AND,((DST-PORT,443),(NETWORK,UDP)),REJECT"

BASE_RULES = [
    # Direct first
    f"RULE-SET,DownLoadClient,{ProxyGroups.DIRECT}",
    f"RULE-SET,ProxyClient,{ProxyGroups.DIRECT}",
    # Ads
    f"RULE-SET,AdBlock,{ProxyGroups.AD_BLOCK}",
    f"RULE-SET,AWAvenue-Ads-Rule,{ProxyGroups.AD_BLOCK}",
    # AI
    "RULE-SET,OpenAI,OpenAI",
    "RULE-SET,Claude,Claude",
    "RULE-SET,Gemini,Gemini",
    "RULE-SET,Perplexity,Perplexity",
    "RULE-SET,Copilot,Copilot",
    # Enterprise
    "RULE-SET,Apple,Apple",
    f"RULE-SET,Adobe,{ProxyGroups.SELECT}",
    "RULE-SET,Amazon,Amazon",
    f"RULE-SET,GitHub,{ProxyGroups.SELECT}",
    "RULE-SET,Google,Google",
    "RULE-SET,OneDrive,OneDrive",
    "RULE-SET,OutLook,OutLook",
    "RULE-SET,Microsoft,Microsoft",
    # Streaming
    "RULE-SET,Netflix,Netflix",
    "RULE-SET,DisneyPlus,DisneyPlus",
    "RULE-SET,Hulu,Hulu",
    "RULE-SET,HBO,HBO",
    "RULE-SET,TikTok,TikTok",
    "RULE-SET,Speedtest,Speedtest",
    "RULE-SET,Steam,Steam",
    "RULE-SET,Ubisoft,Ubisoft",
    "RULE-SET,Netch,Netch",
    "RULE-SET,Spotify,Spotify",
    "RULE-SET,PikPak,PikPak",
    # Social
    "RULE-SET,Telegram,Telegram",
    f"RULE-SET,Twitter,{ProxyGroups.SELECT}",
    f"RULE-SET,Tencent,{ProxyGroups.DIRECT}",
    "RULE-SET,YouTube,YouTube",
    "RULE-SET,PayPal,PayPal",
    "RULE-SET,Discord,Discord",
    "RULE-SET,Facebook,Facebook",
    "RULE-SET,Reddit,Reddit",
    "RULE-SET,JavSP,JavSP",
    "RULE-SET,IDM,IDM",
    "RULE-SET,Bilibili,Bilibili",
    # Proxy / direct
    f"RULE-SET,Proxy,{ProxyGroups.SELECT}",
    "RULE-SET,Direct,DIRECT",
    # Geo
    "GEOIP,CN,DIRECT",
    f"MATCH,{ProxyGroups.SELECT}",
]


# ==================== Sniffer / DNS / Geo ====================

SNIFFER = {
    "sniff": {
        "TLS": {"ports": [443, 8443]},
        "HTTP": {"ports": [80, 8080, 8880]},
        "QUIC": {"ports": [443, 8443]},
    },
    "override-destination": False,
    "enable": True,
    "force-dns-mapping": True,
    "skip-domain": [
        "Mijia Cloud",
        "dlg.io.mi.com",
        "+.push.apple.com",
    ],
}

# ipv6 and enhanced-mode are placeholders, set per call
DNS_BASE = {
    "enable": True,
    "ipv6": False,
    "prefer-h3": True,
    "enhanced-mode": "redir-host",
    "default-nameserver": [
        "119.29.29.29",
        "223.5.5.5",
    ],
    "nameserver": [
        "system",
        "223.5.5.5",
        "119.29.29.29",
        "180.184.1.1",
    ],
    "fallback": [
        "quic://dns0.eu",
        "https://dns.cloudflare.com/dns-query",
        "https://dns.sb/dns-query",
        "tcp://208.67.222.222",
        "tcp://8.26.56.2",
    ],
    "proxy-server-nameserver": [
        "https://dns.alidns.com/dns-query",
        "tls://dot.pub",
    ],
}

FAKE_IP_FILTER = [
    "geosite:private",
    "geosite:connectivity-check",
    "geosite:cn",
    "Mijia Cloud",
    "dig.io.mi.com",
    "localhost.ptlogin2.qq.com",
    "*.icloud.com",
    "*.stun.*.*",
    "*.stun.*.*.*",
]

GEOX_URL = {
    "geoip": "https://gcore.jsdelivr.net/gh/Loyalsoldier/v2ray-rules-dat@release/geoip.dat",
    "geosite": "https://gcore.jsdelivr.net/gh/Loyalsoldier/v2ray-rules-dat@release/geosite.dat",
    "mmdb": "https://gcore.jsdelivr.net/gh/Loyalsoldier/geoip@release/Country.mmdb",
    "asn": "https://gcore.jsdelivr.net/gh/Loyalsoldier/geoip@release/GeoLite2-ASN.mmdb",
}

# Router runtime settings emitted with the "full" flag; ipv6 and disable-keep-alive are set per call
RUNTIME_SETTINGS = {
    "mixed-port": 7890,
    "redir-port": 7892,
    "tproxy-port": 7893,
    "routing-mark": 7894,
    "allow-lan": True,
    "ipv6": False,
    "mode": "rule",
    "unified-delay": True,
    "tcp-concurrent": True,
    "find-process-mode": "off",
    "log-level": "info",
    "geodata-loader": "standard",
    "external-controller": ":9999",
    "disable-keep-alive": True,
    "profile": {
        "store-selected": True,
    },
}
