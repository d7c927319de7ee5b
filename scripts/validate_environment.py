#!/usr/bin/env python3
"""Validate local workload service environment readiness."""

from __future__ import annotations

import importlib
import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from workload.domain.constraints import validate_analytics_config, validate_validation_config
from workload.domain.models import CapacitySnapshot, Severity
from workload.repository.backend_client import BackendClient
from workload.repository.session import SessionContext
from workload.services.analytics_service import analytics_config_from_settings
from workload.services.validation_service import (
    validate_addition,
    validation_config_from_settings,
)
from workload.utils.config import get_settings

SEPARATOR_LINE = "=" * 44


def _print_result(name: str, success: bool, detail: str = "") -> tuple[bool, str]:
    if success:
        return True, f"[PASS] {name}{detail}"
    return False, f"[FAIL] {name}: {detail}"


def main() -> int:
    results: list[str] = []
    all_passed = True
    settings = get_settings()

    # CHECK 1: Python version >= 3.11
    if sys.version_info >= (3, 11):
        ok, line = _print_result("Python " + sys.version.split()[0], True)
    else:
        ok, line = _print_result(
            "Python version >= 3.11",
            False,
            f"found {sys.version.split()[0]}",
        )
    results.append(line)
    all_passed = all_passed and ok

    # CHECK 2: Required packages importable
    package_names = ["fastapi", "uvicorn", "pydantic", "pandas", "requests", "httpx", "pytest"]
    import_errors: list[str] = []
    for module_name in package_names:
        try:
            importlib.import_module(module_name)
        except Exception as exc:  # pragma: no cover - runtime guard
            import_errors.append(f"{module_name} ({exc})")
    if import_errors:
        ok, line = _print_result(
            "Required packages",
            False,
            "missing/unimportable -> " + "; ".join(import_errors),
        )
    else:
        ok, line = _print_result("Required packages: all importable", True)
    results.append(line)
    all_passed = all_passed and ok

    # CHECK 3: Threshold configuration
    try:
        validation_config = validation_config_from_settings(settings)
        validate_validation_config(validation_config)
        validate_analytics_config(analytics_config_from_settings(settings))
        ok, line = _print_result(
            "Threshold configuration",
            True,
            f": warning>{validation_config.warning_threshold:g} "
            f"error>{validation_config.capacity_ceiling:g}",
        )
    except ValueError as exc:
        validation_config = None
        ok, line = _print_result("Threshold configuration", False, str(exc))
    results.append(line)
    all_passed = all_passed and ok

    # CHECK 4: Capacity rule sanity (90% + 15% must be blocked)
    if validation_config is not None:
        try:
            probe = CapacitySnapshot(user_id=0, total_workload=90.0, active_project_count=2)
            outcome = validate_addition(probe, 15, validation_config)
            if outcome.is_valid or outcome.severity is not Severity.ERROR:
                raise RuntimeError(f"expected a blocking error, got {outcome.severity.value}")
            ok, line = _print_result("Capacity rule sanity", True)
        except Exception as exc:
            ok, line = _print_result("Capacity rule sanity", False, str(exc))
        results.append(line)
        all_passed = all_passed and ok

    # CHECK 5: Backend reachability (informational, never fails the run)
    client = BackendClient(SessionContext(base_url=settings.backend_base_url), settings=settings)
    try:
        client.check_health()
        _, line = _print_result("Backend reachable", True, f": {settings.backend_base_url}")
    except Exception as exc:
        line = f"[WARN] Backend not reachable at {settings.backend_base_url}: {exc}"
    results.append(line)

    print(SEPARATOR_LINE)
    print(" Workload Service Environment Validation")
    print(SEPARATOR_LINE)
    for line in results:
        print(f" {line}")
    print(SEPARATOR_LINE)
    if all_passed:
        print(" All checks passed. Environment is ready.")
        print(SEPARATOR_LINE)
        return 0
    print(" One or more checks failed.")
    print(SEPARATOR_LINE)
    return 1


if __name__ == "__main__":
    raise SystemExit(main())
