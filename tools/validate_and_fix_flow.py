"""
Validate and Fix Flow

Single entry point for checking a candidate flow:

    normalize → structure → semantics → auto-fix (copy) → re-validate if fixed

Input: flow (dict from the editor or the planner), catalog (optional)
Output:
    validate_flow        → {isValid, errors, structuralErrors, semanticErrors}
    validate_and_fix_flow → {isValid, errors, warnings, fixedFlow?}

fixedFlow is present only when at least one fix fired; errors then describe
the fixed flow, not the original. Malformed input is reported before any
semantic check runs and is never auto-fixed.

Deterministic. No network calls. Never mutates its input.
"""

from tools.flow_autofix import attempt_fix
from tools.logger import log
from tools.node_catalog_loader import get_default_catalog
from tools.normalize_flow import normalize_flow
from tools.validate_flow_semantics import validate_flow_semantics
from tools.validate_flow_structure import validate_flow_structure


def validate_flow(flow, catalog=None):
    """Strict validation without fixing.

    Args:
        flow: Candidate flow dict.
        catalog: Loaded node catalog. Defaults to the process-wide catalog.

    Returns:
        dict with:
            - isValid: bool — True if zero errors
            - errors: structural errors followed by semantic errors
            - structuralErrors: list of str (malformed input included)
            - semanticErrors: list of str
    """
    if catalog is None:
        catalog = get_default_catalog()
    normalized = normalize_flow(flow)
    return _check(normalized["flow"], normalized["errors"], catalog)


def validate_and_fix_flow(flow, catalog=None):
    """Validate a flow, auto-fix known planner mistakes and re-validate.

    Args:
        flow: Candidate flow dict.
        catalog: Loaded node catalog. Defaults to the process-wide catalog.

    Returns:
        dict with:
            - isValid: bool
            - errors: list of str (of fixedFlow when present)
            - warnings: list of str, one per applied fix
            - fixedFlow: dict (only when warnings is non-empty)
    """
    if catalog is None:
        catalog = get_default_catalog()

    normalized = normalize_flow(flow)
    report = _check(normalized["flow"], normalized["errors"], catalog)

    if normalized["errors"]:
        result = {"isValid": False, "errors": report["errors"], "warnings": []}
        _log_result(result)
        return result

    fix = attempt_fix(normalized["flow"], catalog)
    if not fix["warnings"]:
        result = {"isValid": report["isValid"], "errors": report["errors"], "warnings": []}
        _log_result(result)
        return result

    fixed_report = _check(fix["flow"], [], catalog)
    result = {
        "isValid": fixed_report["isValid"],
        "errors": fixed_report["errors"],
        "warnings": fix["warnings"],
        "fixedFlow": fix["flow"],
    }
    _log_result(result, original_error_count=len(report["errors"]))
    return result


def _check(flow, malformed, catalog):
    structural = list(malformed)
    semantic = []
    if not malformed:
        structural.extend(validate_flow_structure(flow))
        semantic = validate_flow_semantics(flow, catalog)
    return {
        "isValid": not structural and not semantic,
        "errors": structural + semantic,
        "structuralErrors": structural,
        "semanticErrors": semantic,
    }


def _log_result(result, **kwargs):
    log("flow.validated",
        level="info" if result["isValid"] else "warning",
        is_valid=result["isValid"],
        error_count=len(result["errors"]),
        warning_count=len(result["warnings"]),
        fixed="fixedFlow" in result,
        **kwargs)


# --- Self-check ---
if __name__ == "__main__":
    print("=== Validate and Fix Flow Self-Check ===\n")

    result = validate_and_fix_flow({"nodes": "oops"})
    assert result["isValid"] is False and "fixedFlow" not in result
    print("  [OK] Malformed input reported, not fixed")

    result = validate_and_fix_flow({
        "nodes": [{"id": "start", "type": "start", "data": {"label": "Start", "config": {}}}],
        "edges": [],
    })
    assert result == {"isValid": True, "errors": [], "warnings": []}
    print("  [OK] Minimal flow is valid")

    print("\n=== All pipeline checks passed ===")
