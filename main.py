"""Epistemic Auditor - citation-backed claim, forecast and concept audits

Simple CLI for running a single audit or a follow-up analysis.
"""

import argparse
import asyncio
import sys

from auditor.agents.orchestrator import AuditOrchestrator, user_facing_message
from auditor.models.audit import AuditMode, AuditRequest, DeeperKind
from auditor.models.errors import Err


def print_result(result: dict) -> None:
    mode = result.get("mode")
    if mode == AuditMode.DEFINITION.value:
        print(f"Concept: {result.get('concept', '')}")
        print(f"\n{result.get('definition', '')}")
        for debate in result.get("key_debates", []):
            print(f"\n  [debate] {debate.get('title', '')}: {debate.get('description', '')}")
        for item in result.get("common_misconceptions", []):
            print(f"\n  [myth] {item.get('misconception', '')}")
            print(f"  [fact] {item.get('reality', '')}")
    else:
        subject = result.get("claim") or result.get("forecast", "")
        print(f'"{subject}"')
        print(f"\nEpistemic health: {result.get('overall_score', '')}")
        print(result.get("summary", ""))
        if mode == AuditMode.FORECAST.value:
            print(
                f"\nStated: {result.get('stated_probability', '')}"
                f"  Adjusted: {result.get('adjusted_probability', '')}"
            )
            for ref in result.get("reference_classes", []):
                print(f"  - {ref.get('name', '')} ({ref.get('base_rate', '')})")
        for i, sub_claim in enumerate(result.get("sub_claims", []), 1):
            print(f"\n  {i:02d}. {sub_claim.get('title', '')} [{sub_claim.get('confidence', '')}]")
            for item in sub_claim.get("evidence_for", []):
                print(f"      + {item}")
            for item in sub_claim.get("evidence_against", []):
                print(f"      - {item}")

    concepts = result.get("related_concepts", [])
    if concepts:
        print(f"\nRelated concepts: {', '.join(concepts)}")
    sources = result.get("sources", [])
    if sources:
        print(f"\nSources ({len(sources)}):")
        for source in sources:
            print(f"  - {source['title']}: {source['url']}")


async def run_audit(input_text: str, mode: str, model: str | None = None) -> int:
    """Run an audit on the given input."""
    orchestrator = AuditOrchestrator()
    if model:
        orchestrator.model = model
        orchestrator.extraction_model = model

    request = AuditRequest(input_text=input_text, mode=AuditMode(mode))
    print(f"Audit ({request.mode.value}): {request.input_text}")
    print("-" * 50)

    exit_code = 0
    async for event in orchestrator.stream(request):
        event_type = event.event.value
        data = event.data

        if event_type in ("status", "retry"):
            print(f"[~] {data.get('message', '')}")

        elif event_type == "thought_revealed":
            print(f"  [{data.get('timestamp_label')}] {data.get('text', '')}")

        elif event_type == "audit_complete":
            print(f"\n[*] Audit Complete! ({data.get('runtime_ms')}ms)")
            print(f"{'='*50}")
            print_result(data.get("result", {}))

        elif event_type == "error":
            print(f"\n[!] Error: {data.get('message', 'Unknown error')}")
            exit_code = 1

    return exit_code


async def run_deeper(kind: str, claim: str, model: str | None = None) -> int:
    orchestrator = AuditOrchestrator()
    if model:
        orchestrator.model = model

    outcome = await orchestrator.go_deeper(
        DeeperKind(kind), claim, on_status=lambda message: print(f"[~] {message}")
    )
    if isinstance(outcome, Err):
        print(f"[!] Error: {user_facing_message(outcome.error)}")
        return 1
    print(outcome.value)
    return 0


def main():
    parser = argparse.ArgumentParser(description="Epistemic Auditor")
    parser.add_argument("--input", "-i", required=True, help="Claim, forecast or concept to audit")
    parser.add_argument(
        "--mode",
        choices=[m.value for m in AuditMode],
        default=AuditMode.CLAIM.value,
        help="What kind of input this is (default: claim)",
    )
    parser.add_argument(
        "--deeper",
        choices=[k.value for k in DeeperKind],
        help="Run a follow-up analysis of the claim instead of a full audit",
    )
    parser.add_argument("--model", "-m", help="Model to use (default: from config)")

    args = parser.parse_args()

    if args.deeper:
        sys.exit(asyncio.run(run_deeper(args.deeper, args.input, args.model)))
    sys.exit(asyncio.run(run_audit(args.input, args.mode, args.model)))


if __name__ == "__main__":
    main()
