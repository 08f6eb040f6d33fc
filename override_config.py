"""
Clash Routing Override
Classify proxy nodes by region, build proxy groups, rule providers, rules and
DNS settings for a rule-based router from a parsed subscription
"""

import argparse
import copy
import logging
import math
import os
import re
import sys
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, NamedTuple, Optional, Sequence
from urllib.parse import parse_qsl

import requests
import yaml

from override_presets import (
    BASE_EXCLUDE_FILTER, BASE_RULES, CANDIDATE_OVERRIDES, DEFAULT, DIRECT_FIRST, DNS_BASE,
    FAKE_IP_FILTER, GEOX_URL, HEALTH_CHECK_URL, INFRA_ICONS, ISP_PATTERN, LOW_COST_PATTERN,
    NODE_SUFFIX, PRIORITY, QUIC_REJECT_RULE, REGIONS, RULE_PROVIDERS, RUNTIME_SETTINGS,
    SERVICE_GROUPS, SERVICE_PRIORITY, SNIFFER, CandidateOverride, ProxyGroups, RegionEntry,
    ServiceGroup,
)

logger = logging.getLogger(__name__)


# ==================== FlagResolver ====================

@dataclass(frozen=True)
class FeatureFlags:
    load_balance: bool = False
    landing: bool = False
    ipv6_enabled: bool = False
    full_config: bool = False
    keep_alive_enabled: bool = False
    fake_ip_enabled: bool = False
    quic_enabled: bool = False
    country_threshold: int = 0


class FlagResolver:
    """Turn raw host arguments into FeatureFlags"""

    # External argument name -> FeatureFlags field
    BOOL_FLAGS = {
        'loadbalance': 'load_balance',
        'landing': 'landing',
        'ipv6': 'ipv6_enabled',
        'full': 'full_config',
        'keepalive': 'keep_alive_enabled',
        'fakeip': 'fake_ip_enabled',
        'quic': 'quic_enabled',
    }

    _LEADING_INT = re.compile(r'^\s*([+-]?[0-9]+)')

    @staticmethod
    def parse_bool(value: Any) -> bool:
        """True only for boolean True or the strings "true" (any case) / "1" """
        if isinstance(value, bool):
            return value
        if isinstance(value, str):
            return value.lower() == 'true' or value == '1'
        return False

    @staticmethod
    def parse_number(value: Any, default: int = 0) -> int:
        """Parse a base-10 integer prefix, falling back to default"""
        if value is None or isinstance(value, bool):
            return default
        if isinstance(value, int):
            return value
        if isinstance(value, float):
            return int(value) if math.isfinite(value) else default
        match = FlagResolver._LEADING_INT.match(str(value))
        if not match:
            return default
        try:
            return int(match.group(1))
        except ValueError:
            # Longer than the interpreter's int conversion limit
            return default

    @staticmethod
    def parse_arguments(text: Optional[str]) -> Dict[str, str]:
        """Parse "key=value&key=value" (a leading '#' or '?' is ignored)"""
        if not text:
            return {}
        return dict(parse_qsl(text.lstrip('#?'), keep_blank_values=True))

    @staticmethod
    def resolve(args: Optional[Mapping[str, Any]] = None) -> FeatureFlags:
        args = args or {}
        values = {
            target: FlagResolver.parse_bool(args.get(source))
            for source, target in FlagResolver.BOOL_FLAGS.items()
        }
        values['country_threshold'] = FlagResolver.parse_number(args.get('threshold'), 0)
        return FeatureFlags(**values)


# ==================== RegionClassifier ====================

@dataclass(frozen=True)
class CountryCount:
    region_id: str
    count: int


class RegionClassifier:
    """Count proxy nodes per region, first matching region wins"""

    def __init__(self, regions: Sequence[RegionEntry] = REGIONS,
                 isp_pattern: str = ISP_PATTERN, low_cost_pattern: str = LOW_COST_PATTERN):
        self.regions = list(regions)
        self.compiled = [
            (entry.region_id, re.compile(entry.pattern, re.IGNORECASE)) for entry in self.regions
        ]
        self.isp_regex = re.compile(isp_pattern, re.IGNORECASE)
        self.low_cost_regex = re.compile(low_cost_pattern, re.IGNORECASE)

    @staticmethod
    def node_names(proxies: Any) -> List[str]:
        if not isinstance(proxies, (list, tuple)):
            return []
        names = []
        for proxy in proxies:
            name = proxy.get('name') if isinstance(proxy, dict) else None
            names.append(name if isinstance(name, str) else '')
        return names

    def match_region(self, name: str) -> Optional[str]:
        """Region of a single node name, None for landing nodes or no match"""
        if self.isp_regex.search(name):
            return None
        for region_id, regex in self.compiled:
            if regex.search(name):
                return region_id
        return None

    def parse_countries(self, proxies: Any) -> List[CountryCount]:
        """Return region counts in the order regions are first seen"""
        counts: Dict[str, int] = {}
        for name in self.node_names(proxies):
            region_id = self.match_region(name)
            if region_id is not None:
                counts[region_id] = counts.get(region_id, 0) + 1
        return [CountryCount(region_id, count) for region_id, count in counts.items()]

    def has_low_cost(self, proxies: Any) -> bool:
        # Landing nodes are not excluded here
        return any(self.low_cost_regex.search(name) for name in self.node_names(proxies))

    @staticmethod
    def country_group_names(counts: Sequence[CountryCount], threshold: int = 0) -> List[str]:
        return [item.region_id + NODE_SUFFIX for item in counts if item.count >= threshold]

    @staticmethod
    def strip_node_suffix(group_names: Sequence[str]) -> List[str]:
        suffix = re.compile(re.escape(NODE_SUFFIX) + '$')
        return [suffix.sub('', name) for name in group_names]


# ==================== ListBuilder ====================

def build_list(*elements) -> List[str]:
    """Concatenate names and name lists, dropping falsy entries"""
    result = []
    for element in elements:
        if isinstance(element, (list, tuple)):
            result.extend(item for item in element if item)
        elif element:
            result.append(element)
    return result


class BaseLists(NamedTuple):
    default_proxies: List[str]
    default_proxies_direct: List[str]
    default_selector: List[str]
    default_fallback: List[str]


class ListBuilder:

    @staticmethod
    def build_base_lists(landing: bool, low_cost: bool, country_group_names: Sequence[str]) -> BaseLists:
        countries = list(country_group_names)
        landing_group = landing and ProxyGroups.LANDING
        low_cost_group = low_cost and ProxyGroups.LOW_COST

        default_selector = build_list(
            ProxyGroups.FALLBACK, landing_group, countries, low_cost_group, ProxyGroups.MANUAL, 'DIRECT'
        )
        default_proxies = build_list(
            ProxyGroups.SELECT, countries, low_cost_group, ProxyGroups.MANUAL, ProxyGroups.DIRECT
        )
        default_proxies_direct = build_list(
            ProxyGroups.DIRECT, countries, low_cost_group, ProxyGroups.SELECT, ProxyGroups.MANUAL
        )
        default_fallback = build_list(
            landing_group, countries, low_cost_group, ProxyGroups.MANUAL, 'DIRECT'
        )
        return BaseLists(default_proxies, default_proxies_direct, default_selector, default_fallback)


# ==================== ServiceProxyOrderer ====================

class ServiceProxyOrderer:
    """Put a service's preferred regions first"""

    @staticmethod
    def order(priority_regions: Sequence[str], country_group_names: Sequence[str], low_cost: bool) -> List[str]:
        ordered: List[str] = []
        for region_id in priority_regions:
            group_name = region_id + NODE_SUFFIX
            if group_name in country_group_names and group_name not in ordered:
                ordered.append(group_name)
        for group_name in country_group_names:
            if group_name not in ordered:
                ordered.append(group_name)
        return build_list(ordered, ProxyGroups.SELECT, low_cost and ProxyGroups.LOW_COST, ProxyGroups.MANUAL)


# ==================== ProxyGroupGenerator ====================

@dataclass
class Preset:
    """Tables a ConfigOverrider works from; the defaults reproduce the stock layout"""
    regions: Sequence[RegionEntry] = REGIONS
    service_groups: Sequence[ServiceGroup] = SERVICE_GROUPS
    service_priority: Mapping[str, Sequence[str]] = field(default_factory=lambda: SERVICE_PRIORITY)
    candidate_overrides: Mapping[str, CandidateOverride] = field(default_factory=lambda: CANDIDATE_OVERRIDES)
    isp_pattern: str = ISP_PATTERN
    low_cost_pattern: str = LOW_COST_PATTERN


class ProxyGroupGenerator:
    """Generate proxy-groups config"""

    def __init__(self, preset: Preset):
        self.preset = preset
        self.region_meta = {entry.region_id: entry for entry in preset.regions}

    def build_country_groups(self, countries: Sequence[str], landing: bool, load_balance: bool) -> List[dict]:
        """One url-test (or load-balance) group per active region"""
        exclude_filter = BASE_EXCLUDE_FILTER
        if landing:
            exclude_filter = f"(?i){self.preset.isp_pattern}|{BASE_EXCLUDE_FILTER}"
        group_type = 'load-balance' if load_balance else 'url-test'

        groups = []
        for region_id in countries:
            meta = self.region_meta.get(region_id)
            if meta is None:
                continue
            group = {
                'name': meta.group_name,
                'icon': meta.icon,
                'include-all': True,
                'filter': meta.pattern,
                'exclude-filter': exclude_filter,
                'type': group_type,
            }
            if not load_balance:
                group.update({
                    'url': HEALTH_CHECK_URL,
                    'interval': 60,
                    'tolerance': 20,
                    'lazy': False,
                })
            groups.append(group)
        return groups

    @staticmethod
    def front_proxy_members(default_selector: Sequence[str]) -> List[str]:
        # Landing -> Front-Proxy -> Landing / Fallback would form a loop
        excluded = (ProxyGroups.LANDING, ProxyGroups.FALLBACK)
        return [name for name in default_selector if name not in excluded]

    def build_infrastructure_groups(self, landing: bool, lists: BaseLists) -> List[dict]:
        isp_filter = f"(?i){self.preset.isp_pattern}"
        groups = [
            {
                'name': ProxyGroups.SELECT,
                'icon': INFRA_ICONS[ProxyGroups.SELECT],
                'type': 'select',
                'proxies': list(lists.default_selector),
            },
            {
                'name': ProxyGroups.MANUAL,
                'icon': INFRA_ICONS[ProxyGroups.MANUAL],
                'include-all': True,
                'type': 'select',
            },
        ]
        if landing:
            groups.append({
                'name': ProxyGroups.FRONT_PROXY,
                'icon': INFRA_ICONS[ProxyGroups.FRONT_PROXY],
                'type': 'select',
                'include-all': True,
                'exclude-filter': isp_filter,
                'proxies': self.front_proxy_members(lists.default_selector),
            })
            groups.append({
                'name': ProxyGroups.LANDING,
                'icon': INFRA_ICONS[ProxyGroups.LANDING],
                'type': 'select',
                'include-all': True,
                'filter': isp_filter,
            })
        groups.append({
            'name': ProxyGroups.FALLBACK,
            'icon': INFRA_ICONS[ProxyGroups.FALLBACK],
            'type': 'fallback',
            'url': HEALTH_CHECK_URL,
            'proxies': list(lists.default_fallback),
            'interval': 180,
            'tolerance': 20,
            'lazy': False,
        })
        return groups

    def service_candidates(self, service: ServiceGroup, lists: BaseLists,
                           country_group_names: Sequence[str], countries: Sequence[str],
                           low_cost: bool) -> List[str]:
        """Member list of one service group"""
        override = self.preset.candidate_overrides.get(service.name)
        if override is not None and all(region_id in countries for region_id in override.requires):
            return list(override.members)
        if service.members is not None:
            return list(service.members)
        if service.source == PRIORITY:
            priority = self.preset.service_priority.get(service.name, [])
            return ServiceProxyOrderer.order(priority, country_group_names, low_cost)
        if service.source == DIRECT_FIRST:
            return list(lists.default_proxies_direct)
        if service.source != DEFAULT:
            logger.warning(f"Unknown candidate source '{service.source}' for {service.name}, using default list")
        return list(lists.default_proxies)

    def build_service_groups(self, lists: BaseLists, country_group_names: Sequence[str],
                             countries: Sequence[str], low_cost: bool) -> List[dict]:
        return [
            {
                'name': service.name,
                'icon': service.icon,
                'type': 'select',
                'proxies': self.service_candidates(service, lists, country_group_names, countries, low_cost),
            }
            for service in self.preset.service_groups
        ]

    def build_low_cost_group(self) -> dict:
        return {
            'name': ProxyGroups.LOW_COST,
            'icon': INFRA_ICONS[ProxyGroups.LOW_COST],
            'type': 'url-test',
            'url': HEALTH_CHECK_URL,
            'include-all': True,
            'filter': f"(?i){self.preset.low_cost_pattern}",
        }

    @staticmethod
    def build_global_group(groups: Sequence[dict]) -> dict:
        """Catch-all select group naming every group built so far"""
        return {
            'name': ProxyGroups.GLOBAL,
            'icon': INFRA_ICONS[ProxyGroups.GLOBAL],
            'include-all': True,
            'type': 'select',
            'proxies': [group['name'] for group in groups],
        }

    def generate_groups(self, flags: FeatureFlags, countries: Sequence[str],
                        country_group_names: Sequence[str], low_cost: bool, lists: BaseLists) -> List[dict]:
        """Generate complete proxy-groups config"""
        groups = self.build_infrastructure_groups(flags.landing, lists)
        groups.extend(self.build_service_groups(lists, country_group_names, countries, low_cost))
        if low_cost:
            groups.append(self.build_low_cost_group())
        groups.extend(self.build_country_groups(countries, flags.landing, flags.load_balance))
        # Must come last
        groups.append(self.build_global_group(groups))
        return groups


# ==================== RuleComposer ====================

class RuleComposer:
    """Rules, rule providers, sniffer and DNS blocks"""

    @staticmethod
    def build_rules(quic_enabled: bool) -> List[str]:
        rules = list(BASE_RULES)
        if not quic_enabled:
            rules.insert(0, QUIC_REJECT_RULE)
        return rules

    @staticmethod
    def build_rule_providers() -> Dict[str, dict]:
        return copy.deepcopy(RULE_PROVIDERS)

    @staticmethod
    def build_sniffer() -> dict:
        return copy.deepcopy(SNIFFER)

    @staticmethod
    def build_dns(mode: str, ipv6: bool = False, fake_ip_filter: Optional[Sequence[str]] = None) -> dict:
        config = copy.deepcopy(DNS_BASE)
        config['ipv6'] = ipv6
        config['enhanced-mode'] = mode
        if fake_ip_filter:
            config['fake-ip-filter'] = list(fake_ip_filter)
        return config

    @staticmethod
    def select_dns(flags: FeatureFlags) -> dict:
        if flags.fake_ip_enabled:
            return RuleComposer.build_dns('fake-ip', flags.ipv6_enabled, FAKE_IP_FILTER)
        return RuleComposer.build_dns('redir-host', flags.ipv6_enabled)

    @staticmethod
    def build_runtime_settings(flags: FeatureFlags) -> dict:
        settings = copy.deepcopy(RUNTIME_SETTINGS)
        settings['ipv6'] = flags.ipv6_enabled
        settings['disable-keep-alive'] = not flags.keep_alive_enabled
        return settings


# ==================== ConfigOverrider ====================

class ConfigOverrider:
    """Override main class: parsed subscription in, router config out"""

    def __init__(self, arguments: Optional[Mapping[str, Any]] = None, preset: Optional[Preset] = None):
        self.flags = FlagResolver.resolve(arguments)
        self.preset = preset or Preset()
        self.classifier = RegionClassifier(
            self.preset.regions, self.preset.isp_pattern, self.preset.low_cost_pattern
        )
        self.generator = ProxyGroupGenerator(self.preset)

    def override(self, config: Optional[Mapping[str, Any]]) -> dict:
        """Build the router config for one subscription"""
        flags = self.flags
        proxies = (config or {}).get('proxies') or []
        result: Dict[str, Any] = {'proxies': proxies}

        country_info = self.classifier.parse_countries(proxies)
        low_cost = self.classifier.has_low_cost(proxies)
        country_group_names = RegionClassifier.country_group_names(country_info, flags.country_threshold)
        countries = RegionClassifier.strip_node_suffix(country_group_names)

        logger.info(f"Proxy nodes: {len(proxies) if isinstance(proxies, list) else 0}, "
                    f"regions: {len(country_info)}, active: {len(countries)}, low-cost: {low_cost}")
        for item in country_info:
            logger.debug(f"  {item.region_id}: {item.count} nodes")

        lists = ListBuilder.build_base_lists(flags.landing, low_cost, country_group_names)
        proxy_groups = self.generator.generate_groups(flags, countries, country_group_names, low_cost, lists)
        logger.info(f"Proxy groups: {len(proxy_groups)}")

        if flags.full_config:
            result.update(RuleComposer.build_runtime_settings(flags))

        result.update({
            'proxy-groups': proxy_groups,
            'rule-providers': RuleComposer.build_rule_providers(),
            'rules': RuleComposer.build_rules(flags.quic_enabled),
            'sniffer': RuleComposer.build_sniffer(),
            'dns': RuleComposer.select_dns(flags),
            'geodata-mode': True,
            'geox-url': copy.deepcopy(GEOX_URL),
        })
        return result

    @staticmethod
    def load_yaml(file_path: str) -> Optional[dict]:
        """Safely load YAML file"""
        try:
            with open(file_path, 'r', encoding='utf-8') as f:
                return yaml.safe_load(f)
        except FileNotFoundError:
            logger.warning(f"File not found - {file_path}")
            return None
        except yaml.YAMLError as e:
            logger.warning(f"YAML parse error - {file_path}: {e}")
            return None

    @staticmethod
    def dump_yaml(config: Mapping[str, Any]) -> str:
        return yaml.dump(dict(config), allow_unicode=True, sort_keys=False, default_flow_style=False)

    def save(self, config: Mapping[str, Any], output_file: str):
        with open(output_file, 'w', encoding='utf-8') as f:
            f.write(self.dump_yaml(config))
        logger.info(f"Config saved to: {output_file}")


def main(config: Optional[Mapping[str, Any]], arguments: Optional[Mapping[str, Any]] = None) -> dict:
    """Entry point used by subscription hosts"""
    return ConfigOverrider(arguments).override(config)


# ==================== Subscription Fetch ====================

SUBSCRIPTION_HEADERS = {'User-Agent': 'FlClash/v0.8.91 clash-verge Platform/windows', 'Accept': '*/*'}


def fetch_subscription(url: str, timeout: int = 30) -> dict:
    """Download a Clash subscription and return it as a mapping"""
    response = requests.get(url, headers=SUBSCRIPTION_HEADERS, timeout=timeout)
    response.raise_for_status()
    data = yaml.safe_load(response.text)
    if not isinstance(data, dict):
        raise ValueError(f"Subscription at {url} is not a Clash YAML config")
    logger.info(f"Fetched {len(data.get('proxies') or [])} proxies from {url}")
    return data


# ==================== Main Entry ====================

def cli(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Build a Clash routing config from a subscription")
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument('input', nargs='?', help="Clash YAML file with a proxies list")
    source.add_argument('--url', help="subscription URL to fetch instead of a file")
    parser.add_argument('--arg', action='append', default=[], metavar='KEY=VALUE',
                        help="override flag, e.g. --arg fakeip=true (repeatable)")
    parser.add_argument('--args', dest='arg_string', default=os.environ.get('OVERRIDE_ARGS', ''),
                        help="flags as one string, e.g. 'landing=true&threshold=2'")
    parser.add_argument('-o', '--output', help="output YAML file (default: stdout)")
    parser.add_argument('--log-level', default=os.environ.get('LOG_LEVEL', 'INFO'))
    options = parser.parse_args(argv)

    logging.basicConfig(level=getattr(logging, options.log_level.upper(), logging.INFO),
                        format='%(asctime)s - %(levelname)s - %(message)s')

    arguments = FlagResolver.parse_arguments(options.arg_string)
    for item in options.arg:
        key, _, value = item.partition('=')
        arguments[key.strip()] = value.strip()

    if options.url:
        try:
            config = fetch_subscription(options.url)
        except (requests.RequestException, ValueError, yaml.YAMLError) as e:
            logger.error(f"Cannot load subscription {options.url}: {e}")
            return 1
    else:
        config = ConfigOverrider.load_yaml(options.input)
        if not isinstance(config, dict):
            logger.error(f"No valid config in {options.input}")
            return 1

    overrider = ConfigOverrider(arguments)
    result = overrider.override(config)
    if options.output:
        overrider.save(result, options.output)
    else:
        sys.stdout.write(overrider.dump_yaml(result))
    return 0


if __name__ == '__main__':
    sys.exit(cli())
