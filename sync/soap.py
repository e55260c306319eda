"""
SOAP envelopes and the shared response decoder for the Magento V2 API.

Requests are built from one envelope template; every interpolated value is
XML-escaped. Responses are parsed with xmltodict into plain Python values:

- namespace prefixes are dropped from element names
- attributes are dropped (text content is kept)
- an element whose only children are <item> elements becomes a list
- empty or nil elements become None
- every other leaf is a stripped string
"""

from typing import Any, Dict, Iterable, List, Optional
from datetime import datetime
from xml.sax.saxutils import escape
import logging

import xmltodict
from xml.parsers.expat import ExpatError

from core.exceptions import RemoteFault, RemoteParseError, SessionExpiredError

logger = logging.getLogger(__name__)

RawRecord = Dict[str, Any]

# Elements that may hold the payload of a *Response element
RESULT_CONTAINERS = ("result", "info", "loginReturn", "return")

SESSION_EXPIRED_CODES = {"5"}

ENVELOPE = """<?xml version="1.0" encoding="UTF-8"?>
<SOAP-ENV:Envelope xmlns:SOAP-ENV="http://schemas.xmlsoap.org/soap/envelope/"
  xmlns:ns1="urn:Magento"
  xmlns:xsd="http://www.w3.org/2001/XMLSchema"
  xmlns:xsi="http://www.w3.org/2001/XMLSchema-instance"
  xmlns:SOAP-ENC="http://schemas.xmlsoap.org/soap/encoding/"
  SOAP-ENV:encodingStyle="http://schemas.xmlsoap.org/soap/encoding/">
  <SOAP-ENV:Body>
    <ns1:{operation}>{body}</ns1:{operation}>
  </SOAP-ENV:Body>
</SOAP-ENV:Envelope>"""


# ============================================================================
# Request building
# ============================================================================

def string_param(name: str, value: Optional[Any]) -> str:
    """A typed string parameter, or an explicit nil when value is None"""
    if value is None:
        return f'<{name} xsi:nil="true"/>'
    return f'<{name} xsi:type="xsd:string">{escape(str(value))}</{name}>'


def updated_since_filter(updated_since: Optional[datetime]) -> str:
    """complex_filter restricting a listing to rows updated at or after a cutoff"""
    if updated_since is None:
        return '<filters xsi:nil="true"/>'
    # Magento expects "YYYY-MM-DD HH:MM:SS"
    cutoff = updated_since.strftime("%Y-%m-%d %H:%M:%S")
    return (
        "<filters><complex_filter><item>"
        '<key xsi:type="xsd:string">updated_at</key>'
        '<value xsi:type="ns1:associativeEntity">'
        '<key xsi:type="xsd:string">from</key>'
        f'<value xsi:type="xsd:string">{cutoff}</value>'
        "</value></item></complex_filter></filters>"
    )


def string_array(name: str, values: Iterable[Any]) -> str:
    values = [str(v) for v in values]
    items = "".join(f'<item xsi:type="xsd:string">{escape(v)}</item>' for v in values)
    return (
        f'<{name} SOAP-ENC:arrayType="xsd:string[{len(values)}]" '
        f'xsi:type="SOAP-ENC:Array">{items}</{name}>'
    )


def build_envelope(operation: str, *params: str) -> str:
    """Wrap already-rendered parameters into a request envelope"""
    return ENVELOPE.format(operation=operation, body="".join(params))


def soap_action(operation: str) -> str:
    return f"urn:Magento#{operation}"


# ============================================================================
# Response decoding
# ============================================================================

def _local_name(key: str) -> str:
    return key.split(":", 1)[-1]


def simplify(node: Any) -> Any:
    """Turn an xmltodict node into strings, dicts, lists and None"""
    if node is None:
        return None
    if isinstance(node, str):
        text = node.strip()
        return text if text else None
    if isinstance(node, list):
        return [simplify(n) for n in node]

    children = {}
    for key, value in node.items():
        if key == "#text":
            continue
        if key.startswith("@"):
            continue
        children[_local_name(key)] = simplify(value)

    if not children:
        return simplify(node.get("#text"))

    if set(children) == {"item"}:
        items = children["item"]
        if items is None:
            return []
        return items if isinstance(items, list) else [items]

    return children


def parse_body(xml: str, operation: str) -> Dict[str, Any]:
    """
    Parse a response envelope and return the simplified SOAP Body.

    Raises:
        RemoteFault / SessionExpiredError: the body holds a Fault element
        RemoteParseError: the payload is not a SOAP envelope
    """
    try:
        document = xmltodict.parse(xml)
    except ExpatError as e:
        raise RemoteParseError(
            "Response is not well-formed XML",
            context={"operation": operation, "response_body": xml[:300]},
            original_exception=e
        )

    tree = simplify(document)
    envelope = tree.get("Envelope") if isinstance(tree, dict) else None
    body = envelope.get("Body") if isinstance(envelope, dict) else None
    if not isinstance(body, dict):
        raise RemoteParseError(
            "Response has no SOAP body",
            context={"operation": operation, "response_body": xml[:300]}
        )

    fault = body.get("Fault")
    if fault is not None:
        raise_fault(fault, operation)

    return body


def raise_fault(fault: Any, operation: str):
    """Map a Fault element onto the matching exception"""
    fault = fault if isinstance(fault, dict) else {}
    code = fault.get("faultcode")
    message = fault.get("faultstring") or "SOAP Fault"
    context = {"operation": operation}

    if code in SESSION_EXPIRED_CODES or "session expired" in message.lower():
        raise SessionExpiredError(message, context=context, fault_code=code)
    raise RemoteFault(message, context=context, fault_code=code)


def _response_payload(body: Dict[str, Any], operation: str) -> Any:
    response = body.get(f"{operation}Response")
    if response is None:
        # Some gateways rename the response element; take the only child
        values = [v for k, v in body.items() if k.endswith("Response")]
        response = values[0] if values else None

    if isinstance(response, dict):
        for name in RESULT_CONTAINERS:
            if name in response:
                return response[name]
    return response


def decode_scalar(xml: str, operation: str) -> Optional[str]:
    """Payload of a response carrying a single value (e.g. login)"""
    payload = _response_payload(parse_body(xml, operation), operation)
    return payload if isinstance(payload, str) else None


def decode_records(xml: str, operation: str) -> List[RawRecord]:
    """
    Records of a listing response.

    Accepts the payload wrapped in <item> elements (one or many) or a single
    record placed directly in the result container. An empty result is an
    empty list.
    """
    payload = _response_payload(parse_body(xml, operation), operation)
    if payload is None:
        return []
    if isinstance(payload, list):
        return [r for r in payload if isinstance(r, dict)]
    if isinstance(payload, dict):
        return [payload]
    raise RemoteParseError(
        "Unexpected listing payload",
        context={"operation": operation, "payload": str(payload)[:200]}
    )


def decode_record(xml: str, operation: str) -> RawRecord:
    """
    The single record of a detail response.

    Raises:
        RemoteParseError: no record could be located
    """
    records = decode_records(xml, operation)
    if not records:
        raise RemoteParseError(
            "No record found in response",
            context={"operation": operation}
        )
    return records[0]
