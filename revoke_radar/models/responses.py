"""HTTP response builders for scan results.

  build_scan_response():
      200 with ``{items, meta}`` on success; 400 / 500 with
      ``{items: [], meta, error}`` on failure. Always carries ``X-Scan-ID``.
"""

from __future__ import annotations

from fastapi.responses import JSONResponse

from revoke_radar.models.scan import ScanOutcome

SCAN_ID_HEADER = "X-Scan-ID"


def build_scan_response(outcome: ScanOutcome, scan_id: str) -> JSONResponse:
    """Serialise a ScanOutcome into its HTTP response.

    ``X-Scan-ID`` is the ULID that every log line of this scan carries as
    ``request_id``, so a caller can hand it over when reporting a problem.
    """
    response = JSONResponse(status_code=outcome.status_code, content=outcome.to_dict())
    response.headers[SCAN_ID_HEADER] = scan_id
    return response
