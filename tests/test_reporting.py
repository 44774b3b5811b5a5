from habitasim.reporting import COMPARISON_COLUMNS, SCHEDULE_COLUMNS, comparison_frame, schedule_frame
from habitasim.simulator import simulate


def _results(make_profile, make_request, as_of):
    lenders = [
        make_profile(id="dear", name="Dear Bank", rate_table={"SAC": {"TR": 14.0}}),
        make_profile(),
        make_profile(id="nope", name="Nope Bank", rate_table={"PRICE": {"TR": 10.0}}),
    ]
    request = make_request(selected_lender_ids=["dear", "nope", "acme"])
    return simulate(request, lenders, as_of)


def test_schedule_frame(make_profile, make_request, as_of):
    results = _results(make_profile, make_request, as_of)
    df = schedule_frame(results["acme"])
    assert list(df.columns) == SCHEDULE_COLUMNS
    assert len(df) == 360
    assert df["Installment"].tolist()[:3] == [1, 2, 3]
    assert df["Balance"].iloc[-1] == 0.0


def test_schedule_frame_of_rejected_lender_is_empty(make_profile, make_request, as_of):
    df = schedule_frame(_results(make_profile, make_request, as_of)["nope"])
    assert df.empty
    assert list(df.columns) == SCHEDULE_COLUMNS


def test_comparison_frame_keeps_selection_order(make_profile, make_request, as_of):
    df = comparison_frame(_results(make_profile, make_request, as_of))
    assert list(df.columns) == COMPARISON_COLUMNS
    assert df["LenderID"].tolist() == ["dear", "nope", "acme"]
    row = df.set_index("LenderID").loc["nope"]
    assert not row["Feasible"]
    assert "does not offer SAC + TR" in row["Reasons"]


def test_comparison_frame_sorted_by_cost(make_profile, make_request, as_of):
    results = _results(make_profile, make_request, as_of)
    df = comparison_frame(results, sort_by_cost=True)
    assert df["LenderID"].tolist() == ["acme", "dear", "nope"]
    # sorting works on a copy
    assert list(results) == ["dear", "nope", "acme"]
