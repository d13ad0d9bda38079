"""Outreach Finder

Simple CLI for analyzing a goal, running a fan-out search and running a
contact campaign over a saved search.
"""

import argparse
import asyncio

from app.agents.campaign import CampaignRunner
from app.agents.orchestrator import SearchOrchestrator
from app.agents.query_analyzer import QueryAnalyzer
from app.models.search import CATEGORY_TAGS
from app.services.planning import PlanningSession


async def run_analyze(query: str, profile: str):
    """Analyze a query and print the proposed plan."""
    response = await QueryAnalyzer().plan(query, profile)
    print(response.text)
    if response.regions:
        print(f"\n[*] Base region: {response.regions.base_region}")
        print(f"    Larger: {', '.join(response.regions.larger) or '-'}")
        print(f"    Smaller: {', '.join(response.regions.smaller) or '-'}")
    if response.professions:
        print(f"\n[*] Professions: {', '.join(response.professions.professions) or '-'}")
        print(f"    Industries: {', '.join(response.professions.industries) or '-'}")


async def run_search(args: argparse.Namespace):
    session = PlanningSession(
        args.query,
        args.region,
        larger=args.larger,
        smaller=args.smaller,
        professions=args.profession,
        industries=args.industry,
        search_type=args.search_type,
    )
    plan = session.finalize(args.categories)
    print(session.summary())
    print("-" * 50)

    orchestrator = SearchOrchestrator()
    async for event in orchestrator.run(plan, args.user_id, persist=bool(args.user_id)):
        event_type = event.event.value
        data = event.data

        if event_type == "category_started":
            print(f"\n[~] {data.get('category')}: {data.get('total')} searches")

        elif event_type == "category_progress":
            mark = "!" if data.get("failed") else "+"
            print(
                f"  [{mark}] {data.get('category')} {data.get('progress', 0):.0%} "
                f"({data.get('region') or '-'} / {data.get('profession') or '-'})"
            )

        elif event_type == "category_failed":
            print(f"  [!] {data.get('category')} failed: {data.get('message')}")

        elif event_type == "search_complete":
            print(f"\n[*] Search Complete! id={data.get('searchId')}")
            for tag, items in data.get("searchData", {}).items():
                print(f"\n{tag.upper()} ({len(items)})")
                for item in items:
                    print(f"  - {item.get('name')} [{item.get('relevanceScore', 0):.2f}]")
                    if item.get("source"):
                        print(f"    {item['source']}")

        elif event_type == "error":
            print(f"\n[!] Error: {data.get('message', 'Unknown error')}")


async def run_campaign(search_id: str, user_id: str):
    entries = await CampaignRunner(search_id, user_id).run()
    print(f"[*] Campaign finished: {len(entries)} entries")
    for entry in entries:
        person = entry.original_person
        print(f"\n- {person.name} ({person.source or 'no source'})")
        if entry.summary:
            print(f"  {entry.summary.name}: {entry.summary.summary[:200]}")
        if entry.contact_info:
            for contact in entry.contact_info.contacts:
                parts = [contact.name, contact.role, contact.email, contact.phone, contact.address]
                print("  * " + " | ".join(p for p in parts if p))


def main():
    parser = argparse.ArgumentParser(description="Outreach Finder")
    sub = parser.add_subparsers(dest="command", required=True)

    analyze = sub.add_parser("analyze", help="Analyze a goal into a search plan")
    analyze.add_argument("query", help="What you are looking for")
    analyze.add_argument("--profile", "-p", default="", help="Free-text user profile")

    search = sub.add_parser("search", help="Run a fan-out search")
    search.add_argument("query", help="What you are looking for")
    search.add_argument("--region", "-r", default="", help="Base region")
    search.add_argument("--larger", action="append", default=[], help="Larger region")
    search.add_argument("--smaller", action="append", default=[], help="Smaller region")
    search.add_argument("--profession", action="append", default=[], help="Target profession")
    search.add_argument("--industry", action="append", default=[], help="Target industry")
    search.add_argument(
        "--categories",
        "-c",
        nargs="+",
        default=list(CATEGORY_TAGS),
        choices=CATEGORY_TAGS,
        help="Categories to search",
    )
    search.add_argument("--search-type", choices=["marketing", "help"], default="marketing")
    search.add_argument("--user-id", help="Save the result for this user")

    campaign = sub.add_parser("campaign", help="Run a campaign over a saved search")
    campaign.add_argument("search_id")
    campaign.add_argument("--user-id", required=True)

    args = parser.parse_args()

    if args.command == "analyze":
        asyncio.run(run_analyze(args.query, args.profile))
    elif args.command == "search":
        asyncio.run(run_search(args))
    else:
        asyncio.run(run_campaign(args.search_id, args.user_id))


if __name__ == "__main__":
    main()
