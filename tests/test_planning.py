from __future__ import annotations

import pytest

from app.errors import ValidationError
from app.models.search import AgentResponse, ProfessionSet, QueryAnalysis, RegionSet
from app.services.planning import PlanningSession, plan_summary


def _session() -> PlanningSession:
    return PlanningSession(
        "marketing help for my bakery",
        "Chicago",
        larger=["Illinois", "United States"],
        smaller=["Evanston"],
        professions=["Baker"],
        industries=["Food Service"],
    )


def test_session_cleans_initial_regions():
    session = _session()
    assert session.larger == ["Illinois"]
    assert session.smaller == ["Evanston"]


def test_add_and_remove_entries():
    session = _session()

    assert session.add_region("Oak Park") is True
    assert session.add_region("oak park") is False
    assert session.add_region("Canada") is False
    assert session.add_region("chicago") is False
    assert session.add_region("Midwest", larger=True) is True
    assert session.remove_region("EVANSTON") is True
    assert session.remove_region("Nowhere") is False

    assert session.add_profession("Pastry Chef") is True
    assert session.add_profession("baker") is False
    assert session.add_profession("Hospitality", industry=True) is True
    assert session.remove_profession("baker") is True

    plan = session.finalize(["people", "gatherings"])
    assert plan.regions.larger == ("Illinois", "Midwest")
    assert plan.regions.smaller == ("Oak Park",)
    assert plan.professions.professions == ("Pastry Chef",)
    assert plan.professions.industries == ("Food Service", "Hospitality")
    assert plan.selected_categories == ("gatherings", "people")


def test_finalized_session_is_immutable():
    session = _session()
    plan = session.finalize(["people"])

    for edit in (
        lambda: session.add_region("Oak Park"),
        lambda: session.remove_region("Illinois"),
        lambda: session.add_profession("Chef"),
        lambda: session.remove_profession("Baker"),
        lambda: session.finalize(["people"]),
    ):
        with pytest.raises(ValidationError):
            edit()

    with pytest.raises(Exception):
        plan.base_query = "changed"


def test_finalize_rejects_bad_categories():
    with pytest.raises(ValidationError):
        _session().finalize(["weather"])
    with pytest.raises(ValidationError):
        _session().finalize([])


def test_summary_lists_regions_and_audience():
    session = _session()
    session.finalize(["people"])

    assert session.summary() == (
        "I'll focus on:\n"
        "• Base Region: Chicago\n"
        "• Larger Regions: Illinois\n"
        "• Smaller Regions: Evanston\n"
        "• Target Audience: Baker, Food Service"
    )


def test_summary_without_regions():
    session = PlanningSession("q", "", professions=["Baker"])
    assert plan_summary(session.finalize(["platforms"])) == (
        "I'll focus on:\n• Target Audience: Baker"
    )


def test_from_agent_response():
    response = AgentResponse(
        text="...",
        regions=RegionSet(base_region="Chicago", larger=["Illinois"]),
        professions=ProfessionSet(professions=["Baker"]),
        analysis=QueryAnalysis(has_location=True, location="Chicago"),
    )
    session = PlanningSession.from_agent_response("q", response)

    assert session.base_region == "Chicago"
    assert session.larger == ["Illinois"]
    assert session.professions == ["Baker"]

    bare = PlanningSession.from_agent_response(
        "q", AgentResponse(text="...", analysis=QueryAnalysis(location="Austin"))
    )
    assert bare.base_region == "Austin"
