from app.services.scoring import classify, combined_total, distance, final_results, rank_entries


def entry(user, total, p1=None, p2=None):
    return {"userId": user, "userName": user, "p1Name": "A", "p1Points": p1, "p2Name": "B", "p2Points": p2, "total": total}


def test_classify():
    assert classify(None) == "PENDING"
    assert classify(31) == "BUST"
    assert classify(30) == "VALID"
    assert classify(0) == "VALID"
    assert classify("17") == "PENDING"
    assert classify(float("nan")) == "PENDING"


def test_combined_total_needs_both_points():
    assert combined_total(12, 15) == 27
    assert combined_total(0, 0) == 0
    assert combined_total(12, None) is None
    assert combined_total(None, None) is None


def test_distance_only_for_valid_totals():
    assert distance(28) == 2
    assert distance(30) == 0
    assert distance(31) is None
    assert distance(None) is None


def test_ranking_order_valid_then_bust_then_pending():
    ranked = rank_entries([entry("a", 28), entry("b", 31), entry("c", 30), entry("d", None)])
    assert [r["total"] for r in ranked] == [30, 28, 31, None]
    assert [r["outcome"] for r in ranked] == ["VALID", "VALID", "BUST", "PENDING"]
    assert [r["distance"] for r in ranked] == [0, 2, None, None]
    assert ranked[0]["perfect"] is True
    assert [r["position"] for r in ranked] == [1, 2, 3, 4]


def test_close_bust_still_ranks_below_every_valid():
    ranked = rank_entries([entry("bust", 31), entry("far", 2)])
    assert [r["userId"] for r in ranked] == ["far", "bust"]


def test_ties_keep_insertion_order_and_share_rank():
    ranked = rank_entries([entry("first", 29), entry("second", 29), entry("third", 25)])
    assert [r["userId"] for r in ranked] == ["first", "second", "third"]
    assert [r["rank"] for r in ranked] == [1, 1, 3]


def test_bust_and_pending_keep_insertion_order():
    ranked = rank_entries([entry("p1", None), entry("b1", 40), entry("p2", None), entry("b2", 33)])
    assert [r["userId"] for r in ranked] == ["b1", "b2", "p1", "p2"]
    assert all(r["rank"] is None for r in ranked)


def test_ranking_empty_and_odd_inputs():
    assert rank_entries([]) == []
    ranked = rank_entries([entry("neg", -4), entry("junk", "x")])
    assert ranked[0]["outcome"] == "VALID"
    assert ranked[1]["outcome"] == "PENDING"


def test_input_entries_are_not_mutated():
    e = entry("a", 28)
    rank_entries([e])
    assert "outcome" not in e


def test_final_results_filters_pending_and_picks_winner():
    res = final_results([entry("a", None), entry("b", 33), entry("c", 26), entry("d", 26)])
    assert [r["userId"] for r in res["standings"]] == ["c", "d", "b"]
    assert res["winner"]["userId"] == "c"


def test_final_results_without_valid_entry_has_no_winner():
    res = final_results([entry("a", 33), entry("b", None)])
    assert res["winner"] is None
    assert [r["userId"] for r in res["standings"]] == ["a"]
