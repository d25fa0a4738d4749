"""
Test configuration — mock database before any app code loads.
"""

import copy
import os
import sys
from unittest.mock import MagicMock, patch

import pytest

# Set dummy DATABASE_URL before any imports
os.environ["DATABASE_URL"] = "sqlite://"

# Create mock engine and session before db.session is imported
_mock_engine = MagicMock()
_mock_session_local = MagicMock()


def _patched_create_engine(*args, **kwargs):
    return _mock_engine


# Patch create_engine before db.session imports it
with patch("sqlalchemy.create_engine", _patched_create_engine):
    # Force-load db.session with our mocked engine
    if "db.session" in sys.modules:
        del sys.modules["db.session"]
    if "db" in sys.modules:
        del sys.modules["db"]

    import db.session
    db.session.engine = _mock_engine
    db.session.SessionLocal = _mock_session_local
    db.session.check_db = lambda: None

# Now import the app; it will use our mocked db.session
if "app" in sys.modules:
    del sys.modules["app"]

import app as app_module
from tools.node_catalog_loader import load_node_catalog

app_module._catalog = load_node_catalog()


# ── Shared flows ─────────────────────────────────────────────


def make_node(node_id, node_type, config=None, label=None, x=0, y=0):
    return {
        "id": node_id,
        "type": node_type,
        "position": {"x": x, "y": y},
        "data": {
            "label": label or node_type.capitalize(),
            "type": node_type,
            "config": config if config is not None else {},
            "description": "",
            "status": "idle",
        },
    }


def make_edge(edge_id, source, target, handle=None):
    edge = {"id": edge_id, "source": source, "target": target}
    if handle is not None:
        edge["sourceHandle"] = handle
    return edge


PERCENTAGE_MONITOR_FLOW = {
    "nodes": [
        make_node("start", "start", {"variables": [
            {"name": "previousPrice", "type": "number", "defaultValue": "0"},
        ]}, label="Start"),
        make_node("timer", "timer", {"duration": 60, "unit": "s", "timerType": "interval"},
                  label="Every Minute", x=200),
        make_node("price", "marketData", {"symbol": "SEI", "outputVariable": "price"},
                  label="SEI Price", x=400),
        make_node("delta", "arithmetic", {"operation": "subtract", "value1": "{price.price_usd}",
                                          "value2": "previousPrice", "outputVariable": "delta"},
                  label="Price Delta", x=600),
        make_node("ratio", "arithmetic", {"operation": "divide", "value1": "delta",
                                          "value2": "previousPrice", "outputVariable": "ratio"},
                  label="Change Ratio", x=800),
        make_node("check", "conditional", {"operator": "greater", "value1": "ratio", "value2": 0.1},
                  label="Moved 10%", x=1000),
    ],
    "edges": [
        make_edge("e2", "timer", "price"),
        make_edge("e3", "price", "delta"),
        make_edge("e4", "delta", "ratio"),
        make_edge("e5", "ratio", "check"),
    ],
}


@pytest.fixture
def catalog():
    return app_module._catalog


@pytest.fixture
def percentage_flow():
    """Monitoring flow with all three planner mistakes."""
    return copy.deepcopy(PERCENTAGE_MONITOR_FLOW)


@pytest.fixture
def valid_flow():
    """Small flow with no errors and nothing to fix."""
    return {
        "nodes": [
            make_node("start", "start", {"variables": [
                {"name": "wallet", "type": "string", "defaultValue": "sei1abc"},
                {"name": "threshold", "type": "number", "defaultValue": "100"},
            ]}, label="Start"),
            make_node("bal", "blockchain", {"operation": "getBalance", "address": "wallet",
                                             "outputVariable": "balance"}, label="Balance"),
            make_node("low", "conditional", {"operator": "less", "value1": "balance",
                                             "value2": "threshold"}, label="Low Balance"),
            make_node("alert", "telegram", {"message": "Balance below threshold"}, label="Alert"),
        ],
        "edges": [
            make_edge("e1", "start", "bal"),
            make_edge("e2", "bal", "low"),
            make_edge("e3", "low", "alert", handle="true"),
        ],
    }
