"""
Oracle Layer - tagged-result access to the LLM.

Submodules:
    adapter.py → OracleAdapter, Ok / Err results, JSON extraction
    schemas.py → Pydantic response schemas per phase / guardian
"""

from billing_simulation.oracle.adapter import (
    Err,
    Ok,
    OracleAdapter,
    OracleErrorKind,
    OracleResult,
    extract_json_object,
)

__all__ = [
    "Err",
    "Ok",
    "OracleAdapter",
    "OracleErrorKind",
    "OracleResult",
    "extract_json_object",
]
