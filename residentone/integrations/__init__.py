"""residentone.integrations — outbound HTTP gateway modules.

All outbound HTTP calls must go through a gateway in this package, never via
bare `requests` calls in services or blueprints. Every gateway call is:
  - Issued once (no automatic retry)
  - Bounded by a configured timeout
  - Returned as a structured result the caller checks with `.ok`

Current gateways:
  stage_gateway.StageGateway — stage REST API used by the phase board
"""
