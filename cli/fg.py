#!/usr/bin/env python3
"""
fg — Flowguard CLI.

A command-line interface for interacting with the Flowguard API.

Usage:
    fg health                       Show service health
    fg catalog [type]               List node types, or show one entry
    fg validate <file> [--fix]      Validate a flow JSON file
            [--output F]            (write fixedFlow to F)
    fg save <file> --name N         Validate and store a flow
            [--draft] [--accept-fixes]
    fg get <id>                     Show a stored flow
    fg delete <id>                  Delete a stored flow
    fg list                         List stored flows

Environment variables:
    FG_BASE_URL    API base URL (default: http://localhost:8000)
    FG_API_KEY     API key for authenticated requests
"""

import argparse
import json
import os
import sys

import httpx

BASE_URL = os.getenv("FG_BASE_URL", "http://localhost:8000")
API_KEY = os.getenv("FG_API_KEY", "")
OUTPUT_JSON = False


def api_get(path, params=None):
    """GET request to the API."""
    headers = {}
    if API_KEY:
        headers["X-API-Key"] = API_KEY
    try:
        return httpx.get(f"{BASE_URL}{path}", params=params, headers=headers, timeout=30)
    except httpx.ConnectError:
        print(f"Error: Cannot connect to {BASE_URL}")
        sys.exit(1)


def api_post(path, body=None):
    """POST request to the API."""
    headers = {"Content-Type": "application/json"}
    if API_KEY:
        headers["X-API-Key"] = API_KEY
    try:
        return httpx.post(f"{BASE_URL}{path}", json=body or {}, headers=headers, timeout=60)
    except httpx.ConnectError:
        print(f"Error: Cannot connect to {BASE_URL}")
        sys.exit(1)


def api_delete(path):
    """DELETE request to the API."""
    headers = {}
    if API_KEY:
        headers["X-API-Key"] = API_KEY
    try:
        return httpx.delete(f"{BASE_URL}{path}", headers=headers, timeout=30)
    except httpx.ConnectError:
        print(f"Error: Cannot connect to {BASE_URL}")
        sys.exit(1)


def handle_error(resp):
    """Print error and exit if response is not 2xx."""
    if resp.status_code >= 400:
        try:
            detail = resp.json().get("detail", resp.text)
        except ValueError:
            detail = resp.text
        if isinstance(detail, dict):
            print(f"Error {resp.status_code}: {detail.get('message', '')}")
            print_messages("Errors", detail.get("errors", []))
            print_messages("Warnings", detail.get("warnings", []))
        else:
            print(f"Error {resp.status_code}: {detail}")
        sys.exit(1)


def print_json(data):
    """Print formatted JSON."""
    print(json.dumps(data, indent=2, default=str))


def print_messages(title, messages):
    if not messages:
        return
    print(f"{title}:")
    for m in messages:
        print(f"  - {m}")


def print_table(headers, rows):
    """Print a formatted ASCII table."""
    if not rows:
        print("(no data)")
        return
    widths = [len(h) for h in headers]
    for row in rows:
        for i, cell in enumerate(row):
            widths[i] = max(widths[i], len(str(cell)))

    fmt = " | ".join(f"{{:<{w}}}" for w in widths)
    print(fmt.format(*headers))
    print("-+-".join("-" * w for w in widths))
    for row in rows:
        print(fmt.format(*[str(c) for c in row]))


def load_flow_file(path):
    """Read a flow JSON file, exiting with a message on failure."""
    try:
        with open(path, "r") as f:
            return json.load(f)
    except OSError as e:
        print(f"Error: Cannot read {path}: {e}")
        sys.exit(1)
    except ValueError as e:
        print(f"Error: {path} is not valid JSON: {e}")
        sys.exit(1)


# ── Commands ─────────────────────────────────────────────────────


def cmd_health(args):
    """Show service health."""
    r = api_get("/health")
    handle_error(r)
    data = r.json()
    if OUTPUT_JSON:
        print_json(data)
        return
    print(f"OK: {data.get('ok')}")
    print(f"Catalog version: {data.get('catalog_version', '?')}")


def cmd_catalog(args):
    """List node types, or show one catalog entry."""
    if args.type:
        r = api_get(f"/catalog/{args.type}")
        handle_error(r)
        print_json(r.json())
        return
    r = api_get("/catalog")
    handle_error(r)
    data = r.json()
    if OUTPUT_JSON:
        print_json(data)
        return
    rows = [
        [t, entry.get("label", ""), entry.get("description", "")]
        for t, entry in sorted(data.get("node_types", {}).items())
    ]
    print_table(["Type", "Label", "Description"], rows)


def cmd_validate(args):
    """Validate a flow file (optionally auto-fixing it)."""
    flow = load_flow_file(args.file)
    r = api_post("/validate/fix" if args.fix else "/validate", {"flow": flow})
    handle_error(r)
    data = r.json()
    if OUTPUT_JSON:
        print_json(data)
    else:
        print(f"Valid: {data.get('isValid')}")
        print_messages("Errors", data.get("errors", []))
        print_messages("Warnings", data.get("warnings", []))

    if args.fix and args.output and "fixedFlow" in data:
        with open(args.output, "w") as f:
            json.dump(data["fixedFlow"], f, indent=2)
        print(f"Fixed flow written to {args.output}")

    if not data.get("isValid"):
        sys.exit(2)


def cmd_save(args):
    """Validate and store a flow file."""
    flow = load_flow_file(args.file)
    r = api_post("/flows", {
        "name": args.name,
        "flow": flow,
        "description": args.description,
        "draft": args.draft,
        "accept_fixes": args.accept_fixes,
    })
    handle_error(r)
    data = r.json()
    if OUTPUT_JSON:
        print_json(data)
        return
    print(f"Saved flow {data.get('id')} (valid: {data.get('is_valid')}, draft: {data.get('draft')})")
    print_messages("Fixes applied", data.get("warnings", []))
    print_messages("Open errors", data.get("errors", []))


def cmd_get(args):
    """Show a stored flow."""
    r = api_get(f"/flows/{args.id}")
    handle_error(r)
    print_json(r.json())


def cmd_delete(args):
    """Delete a stored flow."""
    r = api_delete(f"/flows/{args.id}")
    handle_error(r)
    print(f"Deleted: {r.json().get('deleted', False)}")


def cmd_list(args):
    """List stored flows."""
    r = api_get("/flows", {"limit": args.limit})
    handle_error(r)
    data = r.json()
    if OUTPUT_JSON:
        print_json(data)
        return
    rows = [
        [f["id"][:8], f["name"], f["is_valid"], f["draft"], (f.get("updated_at") or "")[:19]]
        for f in data.get("flows", [])
    ]
    print_table(["ID", "Name", "Valid", "Draft", "Updated"], rows)


def main(argv=None):
    global BASE_URL, API_KEY, OUTPUT_JSON

    parser = argparse.ArgumentParser(prog="fg", description="Flowguard CLI")
    parser.add_argument("--url", default=os.getenv("FG_BASE_URL", "http://localhost:8000"), help="API base URL")
    parser.add_argument("--key", default=os.getenv("FG_API_KEY", ""), help="API key")
    parser.add_argument("--json", action="store_true", dest="json_output", help="Output raw JSON")

    sub = parser.add_subparsers(dest="command")

    sub.add_parser("health", help="Service health")
    p = sub.add_parser("catalog", help="Node catalog")
    p.add_argument("type", nargs="?", help="Node type to show")
    p = sub.add_parser("validate", help="Validate a flow file")
    p.add_argument("file", help="Flow JSON file")
    p.add_argument("--fix", action="store_true", help="Auto-fix known planner mistakes")
    p.add_argument("--output", "-o", help="Write fixedFlow to this file")
    p = sub.add_parser("save", help="Validate and store a flow file")
    p.add_argument("file", help="Flow JSON file")
    p.add_argument("--name", required=True, help="Flow name")
    p.add_argument("--description", help="Flow description")
    p.add_argument("--draft", action="store_true", help="Keep the flow even with semantic errors")
    p.add_argument("--accept-fixes", action="store_true", dest="accept_fixes",
                   help="Store the auto-fixed flow")
    p = sub.add_parser("get", help="Show a stored flow")
    p.add_argument("id", help="Flow ID")
    p = sub.add_parser("delete", help="Delete a stored flow")
    p.add_argument("id", help="Flow ID")
    p = sub.add_parser("list", help="List stored flows")
    p.add_argument("--limit", type=int, default=50, help="Maximum rows")

    args = parser.parse_args(argv)
    BASE_URL = args.url
    API_KEY = args.key
    OUTPUT_JSON = args.json_output

    cmd_map = {
        "health": cmd_health,
        "catalog": cmd_catalog,
        "validate": cmd_validate,
        "save": cmd_save,
        "get": cmd_get,
        "delete": cmd_delete,
        "list": cmd_list,
    }

    if args.command in cmd_map:
        cmd_map[args.command](args)
    else:
        parser.print_help()


if __name__ == "__main__":
    main()
