"""Tests for circular dependency detection."""

from gigster.workflows.dependencies import would_create_cycle


def test_self_dependency_is_cycle() -> None:
    assert would_create_cycle({}, 1, 1)


def test_direct_back_edge_is_cycle() -> None:
    # 2 depends on 1; adding 1 -> 2 loops
    assert would_create_cycle({2: [1]}, 1, 2)


def test_transitive_cycle_detected() -> None:
    graph = {2: [3], 3: [4], 4: [1]}

    assert would_create_cycle(graph, 1, 2)


def test_diamond_is_not_cycle() -> None:
    graph = {1: [2, 3], 2: [4], 3: [4]}

    assert not would_create_cycle(graph, 5, 1)
    assert not would_create_cycle(graph, 1, 4)
