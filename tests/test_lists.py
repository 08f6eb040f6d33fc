from override_config import ListBuilder, ServiceProxyOrderer, build_list


def test_build_list_drops_falsy_entries():
    assert build_list("a", False, ["b", None, "c"], "", None, "d") == ["a", "b", "c", "d"]
    assert build_list() == []


def test_scenario_selector_list():
    lists = ListBuilder.build_base_lists(landing=False, low_cost=True, country_group_names=["香港节点", "美国节点"])
    assert lists.default_selector == ["故障转移", "香港节点", "美国节点", "低倍率节点", "手动选择", "DIRECT"]


def test_base_lists_with_landing_and_low_cost():
    lists = ListBuilder.build_base_lists(landing=True, low_cost=True, country_group_names=["日本节点"])
    assert lists.default_selector == ["故障转移", "落地节点", "日本节点", "低倍率节点", "手动选择", "DIRECT"]
    assert lists.default_proxies == ["选择代理", "日本节点", "低倍率节点", "手动选择", "直连"]
    assert lists.default_proxies_direct == ["直连", "日本节点", "低倍率节点", "选择代理", "手动选择"]
    assert lists.default_fallback == ["落地节点", "日本节点", "低倍率节点", "手动选择", "DIRECT"]


def test_base_lists_without_optional_segments():
    lists = ListBuilder.build_base_lists(landing=False, low_cost=False, country_group_names=[])
    assert lists.default_selector == ["故障转移", "手动选择", "DIRECT"]
    assert lists.default_proxies == ["选择代理", "手动选择", "直连"]
    assert lists.default_proxies_direct == ["直连", "选择代理", "手动选择"]
    assert lists.default_fallback == ["手动选择", "DIRECT"]
    for value in lists:
        assert all(value)


def test_service_order_puts_priority_regions_first():
    active = ["香港节点", "美国节点", "日本节点", "台湾节点"]
    result = ServiceProxyOrderer.order(["韩国", "日本", "美国"], active, low_cost=False)
    assert result == ["日本节点", "美国节点", "香港节点", "台湾节点", "选择代理", "手动选择"]


def test_service_order_low_cost_suffix():
    result = ServiceProxyOrderer.order(["美国"], ["香港节点", "美国节点"], low_cost=True)
    assert result == ["美国节点", "香港节点", "选择代理", "低倍率节点", "手动选择"]


def test_service_order_is_duplicate_free_permutation():
    active = ["香港节点", "美国节点", "日本节点"]
    result = ServiceProxyOrderer.order(["美国", "美国", "英国", "日本"], active, low_cost=False)
    regions = result[:-2]
    assert len(regions) == len(set(regions))
    assert sorted(regions) == sorted(active)


def test_service_order_without_active_regions():
    assert ServiceProxyOrderer.order(["美国"], [], low_cost=False) == ["选择代理", "手动选择"]
