from override_config import ConfigOverrider, Preset, main
from override_presets import CandidateOverride, RegionEntry, ServiceGroup

from conftest import make_proxies

LITERALS = {"DIRECT", "REJECT", "REJECT-DROP"}


def groups_by_name(config):
    return {group["name"]: group for group in config["proxy-groups"]}


def test_group_names_are_unique(sample_config):
    config = main(sample_config, {"landing": "true"})
    names = [group["name"] for group in config["proxy-groups"]]
    assert len(names) == len(set(names))


def test_every_member_resolves(sample_config):
    for arguments in ({}, {"landing": "true"}, {"landing": "true", "loadbalance": "true"}):
        config = main(sample_config, arguments)
        names = {group["name"] for group in config["proxy-groups"]}
        for group in config["proxy-groups"]:
            for member in group.get("proxies", []):
                assert member in names or member in LITERALS, (group["name"], member)
                assert member != group["name"]


def test_group_graph_has_no_cycles(sample_config):
    config = main(sample_config, {"landing": "true"})
    edges = {group["name"]: group.get("proxies", []) for group in config["proxy-groups"]}
    visiting, done = set(), set()

    def visit(name):
        assert name not in visiting, f"cycle through {name}"
        if name in done or name not in edges:
            return
        visiting.add(name)
        for member in edges[name]:
            visit(member)
        visiting.discard(name)
        done.add(name)

    for name in edges:
        visit(name)


def test_global_group_lists_every_other_group(sample_config):
    config = main(sample_config)
    groups = config["proxy-groups"]
    global_group = groups[-1]
    assert global_group["name"] == "GLOBAL"
    assert global_group["type"] == "select"
    assert global_group["include-all"] is True
    assert global_group["proxies"] == [group["name"] for group in groups[:-1]]
    assert "GLOBAL" not in global_group["proxies"]


def test_infrastructure_order_without_landing(sample_config):
    names = [group["name"] for group in main(sample_config)["proxy-groups"]]
    assert names[:3] == ["选择代理", "手动选择", "故障转移"]
    assert "前置代理" not in names
    assert "落地节点" not in names


def test_landing_groups(sample_config):
    groups = groups_by_name(main(sample_config, {"landing": "true"}))
    names = list(groups)
    assert names[:5] == ["选择代理", "手动选择", "前置代理", "落地节点", "故障转移"]

    front = groups["前置代理"]
    assert "落地节点" not in front["proxies"]
    assert "故障转移" not in front["proxies"]
    assert front["proxies"][-1] == "DIRECT"
    assert front["exclude-filter"].startswith("(?i)")

    landing = groups["落地节点"]
    assert landing["include-all"] is True
    assert "Starlink" in landing["filter"]

    assert groups["选择代理"]["proxies"][:2] == ["故障转移", "落地节点"]
    assert groups["故障转移"]["proxies"][0] == "落地节点"
    assert groups["香港节点"]["exclude-filter"].startswith("(?i)家宽")


def test_region_groups_url_test(sample_config):
    groups = groups_by_name(main(sample_config))
    hk = groups["香港节点"]
    assert hk["type"] == "url-test"
    assert hk["include-all"] is True
    assert hk["exclude-filter"] == "低倍率|省流|大流量"
    assert hk["url"] == "https://cp.cloudflare.com/generate_204"
    assert hk["interval"] == 60
    assert hk["tolerance"] == 20
    assert hk["lazy"] is False
    assert hk["filter"].startswith("(?i)香港")


def test_region_groups_load_balance(sample_config):
    groups = groups_by_name(main(sample_config, {"loadbalance": "true"}))
    hk = groups["香港节点"]
    assert hk["type"] == "load-balance"
    for key in ("url", "interval", "tolerance", "lazy"):
        assert key not in hk


def test_region_groups_follow_threshold(sample_config):
    groups = groups_by_name(main(sample_config, {"threshold": "2"}))
    assert "香港节点" in groups
    assert "日本节点" not in groups
    assert "日本节点" not in groups["选择代理"]["proxies"]


def test_low_cost_group_only_when_present():
    groups = groups_by_name(main({"proxies": make_proxies("HK 01", "JP 01")}))
    assert "低倍率节点" not in groups
    assert "低倍率节点" not in groups["选择代理"]["proxies"]

    groups = groups_by_name(main({"proxies": make_proxies("HK 01", "HK 省流")}))
    low_cost = groups["低倍率节点"]
    assert low_cost["type"] == "url-test"
    assert low_cost["filter"].startswith("(?i)")


def test_priority_services():
    proxies = make_proxies("HK 01", "US 01", "JP 01", "KR 01", "UK 01")
    groups = groups_by_name(main({"proxies": proxies}))
    assert groups["OpenAI"]["proxies"][:5] == ["韩国节点", "日本节点", "美国节点", "英国节点", "香港节点"]
    assert groups["Claude"]["proxies"][0] == "英国节点"
    assert groups["Reddit"]["proxies"][0] == "美国节点"
    assert groups["JavSP"]["proxies"][0] == "日本节点"
    assert groups["Telegram"]["proxies"][0] == "选择代理"
    assert groups["Microsoft"]["proxies"][0] == "直连"
    assert groups["IDM"]["proxies"] == ["直连", "选择代理"]
    assert groups["直连"]["proxies"] == ["DIRECT", "选择代理"]
    assert groups["广告拦截"]["proxies"] == ["REJECT", "REJECT-DROP", "直连"]


def test_bilibili_override_needs_taiwan_and_hong_kong():
    groups = groups_by_name(main({"proxies": make_proxies("HK 01", "TW 01", "JP 01")}))
    assert groups["Bilibili"]["proxies"] == ["直连", "台湾节点", "香港节点"]

    groups = groups_by_name(main({"proxies": make_proxies("HK 01", "JP 01")}))
    assert groups["Bilibili"]["proxies"] == ["直连", "香港节点", "日本节点", "选择代理", "手动选择"]


def test_bilibili_override_respects_threshold():
    proxies = make_proxies("HK 01", "HK 02", "TW 01")
    groups = groups_by_name(main({"proxies": proxies}, {"threshold": "2"}))
    assert groups["Bilibili"]["proxies"][0] == "直连"
    assert "台湾节点" not in groups["Bilibili"]["proxies"]


def test_empty_proxy_list():
    for config in ({"proxies": []}, {}, None):
        result = main(config)
        groups = result["proxy-groups"]
        assert not any(group["name"].endswith("节点") and group["name"] != "落地节点" for group in groups)
        assert groups[-1]["name"] == "GLOBAL"
        assert groups[-1]["proxies"] == [group["name"] for group in groups[:-1]]
        assert result["proxies"] == []


def test_custom_preset_tables():
    preset = Preset(
        service_groups=(
            ServiceGroup("Media", "icon.png", "priority"),
            ServiceGroup("Games", "icon.png", "direct"),
        ),
        service_priority={"Media": ["日本"]},
        candidate_overrides={"Games": CandidateOverride(requires=("日本",), members=("DIRECT",))},
    )
    config = ConfigOverrider(preset=preset).override({"proxies": make_proxies("HK 01", "JP 01")})
    groups = groups_by_name(config)
    assert groups["Media"]["proxies"][:2] == ["日本节点", "香港节点"]
    assert groups["Games"]["proxies"] == ["DIRECT"]
    assert "OpenAI" not in groups


def test_input_is_not_mutated(sample_config):
    before = [dict(proxy) for proxy in sample_config["proxies"]]
    main(sample_config, {"landing": "true", "full": "true"})
    assert sample_config["proxies"] == before
    assert set(sample_config) == {"proxies"}


def test_custom_region_table_matches_any_case():
    preset = Preset(regions=(RegionEntry("香港", "HK", "i.png"),))
    config = ConfigOverrider(preset=preset).override({"proxies": make_proxies("hk-01")})
    groups = groups_by_name(config)
    assert groups["香港节点"]["filter"] == "HK"
    assert "香港节点" in groups["选择代理"]["proxies"]
