from goldmatch.merge.clustering import DuplicateClusterer, build_match_graph, unscored_pairs


def test_connected_matches_form_one_cluster(make_result):
    """Test transitive grouping when every pair agrees."""
    results = [
        make_result("A", "B", 0.95, "match"),
        make_result("B", "C", 0.93, "match"),
        make_result("A", "C", 0.91, "match"),
    ]
    clusters, reports = DuplicateClusterer().cluster(["A", "B", "C", "D"], results)

    assert clusters == [("A", "B", "C"), ("D",)]
    assert reports == []


def test_possible_matches_do_not_cluster(make_result):
    """Test that possible_match pairs are never merged automatically."""
    results = [make_result("A", "B", 0.75, "possible_match")]
    clusters, _ = DuplicateClusterer().cluster(["A", "B"], results)
    assert clusters == [("A",), ("B",)]


def test_non_transitive_triple_is_split_and_reported(make_result):
    """Test that A~B, B~C but A!~C never ends as a silent 3-way cluster."""
    results = [
        make_result("A", "B", 0.97, "match"),
        make_result("B", "C", 0.91, "match"),
        make_result("A", "C", 0.20, "no_match"),
    ]
    clusters, reports = DuplicateClusterer().cluster(["A", "B", "C"], results)

    assert clusters == [("A", "B"), ("C",)]
    assert len(reports) == 1
    report = reports[0]
    assert report.component == ("A", "B", "C")
    assert report.violating_pairs == (("A", "C"),)
    assert report.cut_edges == (("B", "C"),)
    assert "A/C" in report.flag


def test_split_handles_several_violations(make_result):
    """Test a chain that needs more than one cut."""
    results = [
        make_result("A", "B", 0.95, "match"),
        make_result("B", "C", 0.92, "match"),
        make_result("C", "D", 0.96, "match"),
        make_result("A", "C", 0.10, "no_match"),
        make_result("B", "D", 0.10, "no_match"),
    ]
    clusters, reports = DuplicateClusterer().cluster(["A", "B", "C", "D"], results)

    assert sorted(clusters) == [("A", "B"), ("C", "D")]
    assert len(reports) == 1
    for a, b in [("A", "C"), ("B", "D")]:
        assert not any(a in c and b in c for c in clusters)


def test_clusters_follow_input_order(make_result):
    """Test deterministic ordering of clusters and members."""
    results = [make_result("Z", "M", 0.99, "match")]
    clusters, _ = DuplicateClusterer().cluster(["Z", "A", "M"], results)
    assert clusters == [("Z", "M"), ("A",)]


def test_build_match_graph(make_result):
    """Test graph construction from decisions."""
    graph = build_match_graph(
        ["A", "B", "C"],
        [make_result("A", "B", 0.95, "match"), make_result("B", "C", 0.7, "possible_match")]
    )
    assert set(graph.nodes) == {"A", "B", "C"}
    assert list(graph.edges) == [("A", "B")]
    assert graph["A"]["B"]["capacity"] == 0.95


def test_unscored_pairs():
    """Test detection of pairs that were never compared."""
    assert unscored_pairs(("A", "B", "C"), {("A", "B"), ("B", "C")}) == [("A", "C")]
    assert unscored_pairs(("C", "A"), set()) == [("A", "C")]
