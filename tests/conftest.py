"""
Shared pytest fixtures and configuration for all tests.

This module provides common fixtures used across multiple test files to reduce
duplication and ensure consistent test isolation.
"""

import json

import pytest
import pytest_asyncio

from concierge.utils.monitor import clear_monitor_entries
from concierge.utils.session import SessionContext, SessionStore
from concierge.utils.settings import config

# Configure pytest-asyncio to auto-detect async tests
pytest_plugins = ("pytest_asyncio",)


@pytest.fixture(autouse=True)
def reset_config():
    """
    Save and restore config values for test isolation.

    This fixture runs automatically for all tests to ensure environment
    configuration doesn't leak between tests.
    """
    # Save original values
    original_values = {
        "ssl_verify": config.ssl_verify,
        "ssl_cert_path": config.ssl_cert_path,
        "auth_method": config.auth_method,
        "api_key": config.api_key,
        "oauth_endpoint": config.oauth_endpoint,
        "oauth_client_id": config.oauth_client_id,
        "oauth_client_secret": config.oauth_client_secret,
        "log_level": config.log_level,
        "environment": config.environment,
        "session_ttl_minutes": config.session_ttl_minutes,
        "session_max_entries": config.session_max_entries,
        "max_conversation_summaries": config.max_conversation_summaries,
        "max_history_turns": config.max_history_turns,
        "default_timezone": config.default_timezone,
        "monitor_enabled": config.monitor_enabled,
    }

    # Set test defaults
    config.ssl_verify = False
    config.ssl_cert_path = None
    config.auth_method = "api_key"
    config.api_key = "test-api-key"
    config.oauth_endpoint = "https://test.example.com/oauth/token"
    config.oauth_client_id = "test-client-id"
    config.oauth_client_secret = "test-client-secret"
    config.log_level = "INFO"
    config.environment = "test"
    config.session_ttl_minutes = 30
    config.session_max_entries = 10_000
    config.max_conversation_summaries = 10
    config.max_history_turns = 5
    config.default_timezone = None
    config.monitor_enabled = False

    yield

    # Restore original values
    for key, value in original_values.items():
        setattr(config, key, value)


@pytest.fixture(autouse=True)
def cleanup_monitor():
    """
    Clean up monitor entries after each test.

    Ensures process monitoring data doesn't leak between tests.
    """
    yield
    clear_monitor_entries()


@pytest.fixture
def mock_ssl_config():
    """
    Mock SSL configuration for testing.

    Returns:
        Dict with standard SSL config structure.
    """
    return {
        "verify": False,
        "cert_path": None,
        "status": "Success",
        "error": None,
        "decision_details": "SSL verification: disabled",
    }


@pytest.fixture
def mock_auth_config():
    """
    Mock authentication configuration for testing.

    Returns:
        Dict with standard auth config structure.
    """
    return {
        "success": True,
        "status": "Success",
        "method": "api_key",
        "token": "test-token",
        "header": {"Authorization": "Bearer test-token"},
        "error": None,
        "decision_details": "Authentication method: api_key",
    }


@pytest.fixture
def execution_id():
    """
    Provide a consistent execution ID for testing.

    Returns:
        String UUID for execution tracking.
    """
    return "test-exec-1234-5678-9abc-def012345678"


@pytest.fixture
def test_context(execution_id, mock_auth_config, mock_ssl_config):
    """
    Provide a standard runtime context for agent and pipeline calls.

    Returns:
        Dict with execution_id, auth_config, and ssl_config.
    """
    return {
        "execution_id": execution_id,
        "auth_config": mock_auth_config,
        "ssl_config": mock_ssl_config,
    }


@pytest_asyncio.fixture
async def async_test_context(test_context):
    """Async flavour of ``test_context`` for async fixtures."""
    return test_context


@pytest.fixture
def session():
    """A fresh session for customer 123456789."""
    return SessionContext(customer_id="123456789")


@pytest.fixture
def session_store():
    """An empty in-memory session store."""
    return SessionStore(max_entries=100)


def _tool_response(arguments, tokens=100, cost=0.001):
    if not isinstance(arguments, str):
        arguments = json.dumps(arguments)
    return {
        "choices": [
            {
                "message": {
                    "content": None,
                    "tool_calls": [{"function": {"arguments": arguments}}],
                }
            }
        ],
        "usage": {"total_tokens": tokens},
        "metrics": {"total_tokens": tokens, "total_cost": cost, "response_time": 0.5},
    }


def _content_response(content, tokens=50, cost=0.0005):
    return {
        "choices": [{"message": {"content": content}}],
        "usage": {"total_tokens": tokens},
        "metrics": {"total_tokens": tokens, "total_cost": cost, "response_time": 0.3},
    }


@pytest.fixture
def tool_response():
    """Builder for a ``complete_with_tools`` response carrying one tool call."""
    return _tool_response


@pytest.fixture
def content_response():
    """Builder for a ``complete`` response carrying assistant text."""
    return _content_response


@pytest.fixture
def current_accounts_document():
    """Provider document with one current account and two transactions."""
    return {
        "data": {
            "accounts": [
                {
                    "account": {
                        "accountId": "ACC-001",
                        "nickname": "Main Account",
                        "currency": "ILS",
                        "status": "ACTIVE",
                    },
                    "balances": {
                        "asOf": "2025-12-13T08:00:00Z",
                        "currency": "ILS",
                        "current": 12500.5,
                        "available": 12000.0,
                        "holds": 500.5,
                    },
                    "transactions": [
                        {
                            "transactionId": "TX-1",
                            "type": "DEBIT",
                            "status": "POSTED",
                            "amount": -250.0,
                            "currency": "ILS",
                            "bookingDate": "2025-12-10",
                            "valueDate": "2025-12-11",
                            "description": "Supermarket",
                            "merchant": {"name": "Shufersal", "mcc": "5411"},
                            "category": {"code": "GROCERIES", "label": "Groceries"},
                        },
                        {
                            "transactionId": "TX-2",
                            "type": "CREDIT",
                            "status": "POSTED",
                            "amount": 9000.0,
                            "currency": "ILS",
                            "bookingDate": "2025-11-28",
                            "valueDate": "2025-11-28",
                            "description": "Salary",
                            "counterparty": {"name": "Employer Ltd", "bankName": "Bank Hapoalim"},
                        },
                    ],
                    "transactionsSummary": {
                        "fromDate": "2025-11-01",
                        "toDate": "2025-12-13",
                        "transactionCount": 2,
                        "totalDebits": 250.0,
                        "totalCredits": 9000.0,
                    },
                    "pagination": {"pageSize": 50, "hasMore": False},
                }
            ]
        },
        "metadata": {
            "schemaVersion": "1.0",
            "currencyDecimals": {"ILS": 2},
            "disclaimers": ["Balances are indicative."],
        },
    }


@pytest.fixture
def credit_cards_document():
    """Provider document with one credit card."""
    return {
        "data": {
            "cards": [
                {
                    "card": {
                        "cardId": "CARD-9",
                        "maskedPan": "**** **** **** 4321",
                        "nickname": "Everyday Visa",
                        "currency": "ILS",
                        "status": "ACTIVE",
                    },
                    "currentBalance": {
                        "asOf": "2025-12-13",
                        "currency": "ILS",
                        "postedBalance": 1840.0,
                        "pendingAmount": 120.0,
                    },
                    "limits": {"creditLimit": 15000.0, "availableCredit": 13040.0},
                    "transactions": [
                        {
                            "transactionId": "CT-1",
                            "amount": 120.0,
                            "currency": "ILS",
                            "transactionDate": "2025-12-12",
                            "postingDate": "2025-12-14",
                            "description": "Cafe",
                            "installments": {"isInstallment": False},
                        }
                    ],
                    "lastStatement": {"statementDate": "2025-11-30", "balance": 2100.0},
                }
            ]
        },
        "metadata": {"schemaVersion": "1.0"},
    }


@pytest.fixture
def loans_document():
    """Provider document with two loans."""
    return {
        "data": {
            "loans": [
                {
                    "loan": {"loanId": "LN-1", "nickname": "Car Loan", "currency": "ILS", "status": "ACTIVE"},
                    "balances": {
                        "currency": "ILS",
                        "principalOutstanding": 42000.0,
                        "accruedInterest": 310.25,
                        "totalOutstanding": 42310.25,
                    },
                    "schedule": {"nextPaymentDate": "2026-01-01", "nextPaymentAmount": 1500.0},
                    "transactions": [
                        {"transactionId": "LT-1", "amount": -1500.0, "bookingDate": "2025-12-01"},
                    ],
                },
                {
                    "loan": {"loanId": "LN-2", "nickname": "Home Renovation", "currency": "ILS"},
                    "balances": {"currency": "ILS", "principalOutstanding": 8000.0},
                },
            ]
        },
        "metadata": {"schemaVersion": "1.0"},
    }


@pytest.fixture
def securities_document():
    """Provider document with one securities account."""
    return {
        "data": {
            "accounts": [
                {
                    "account": {
                        "securitiesAccountId": "SEC-7",
                        "nickname": "Long Term",
                        "baseCurrency": "ILS",
                        "status": "ACTIVE",
                    },
                    "valuation": {
                        "asOf": "2025-12-12",
                        "baseCurrency": "ILS",
                        "marketValueBase": 250000.0,
                        "cashBalanceBase": 5000.0,
                        "totalValueBase": 255000.0,
                    },
                    "positionsSummary": {"count": 1},
                    "positions": [{"symbol": "TA35", "quantity": 100}],
                }
            ]
        },
        "metadata": {"schemaVersion": "1.0"},
    }


@pytest.fixture
def foreign_current_accounts_document():
    """Provider document with one USD account and a converted transaction."""
    return {
        "data": {
            "accounts": [
                {
                    "account": {"accountId": "FX-1", "nickname": "Dollar Account", "currency": "USD"},
                    "balances": {"currency": "USD", "current": 3200.0, "available": 3200.0},
                    "transactions": [
                        {
                            "transactionId": "F-1",
                            "amount": -100.0,
                            "currency": "USD",
                            "bookingDate": "2025-12-01",
                            "valueDate": "2025-12-02",
                            "fxRate": {"baseCurrency": "USD", "quoteCurrency": "ILS", "rate": 3.7},
                        }
                    ],
                    "transactionsSummary": {
                        "transactionCount": 1,
                        "ilsEquivalent": {"totalDebitsIls": 370.0, "fxMethod": "DAILY"},
                    },
                }
            ]
        },
        "metadata": {"schemaVersion": "1.0", "currencyDecimals": {"USD": 2}},
    }


@pytest.fixture
def mortgages_document():
    """Provider document with one mortgage split into two segments."""
    return {
        "data": {
            "mortgages": [
                {
                    "mortgage": {
                        "mortgageId": "MTG-3",
                        "nickname": "Home Mortgage",
                        "currency": "ILS",
                        "status": "ACTIVE",
                    },
                    "balances": {
                        "currency": "ILS",
                        "principalOutstanding": 850000.0,
                        "accruedInterest": 2100.0,
                        "totalOutstanding": 852100.0,
                    },
                    "accounts": [{"accountId": "ACC-001", "role": "PAYMENT"}],
                    "segments": [
                        {"segmentId": "S-1", "track": "PRIME", "principalOutstanding": 500000.0},
                        {"segmentId": "S-2", "track": "FIXED", "principalOutstanding": 350000.0},
                    ],
                    "features": {"earlyRepaymentAllowed": True},
                }
            ]
        },
        "metadata": {"schemaVersion": "1.0"},
    }


@pytest.fixture
def deposits_document():
    """Provider document with one fixed deposit."""
    return {
        "data": {
            "deposits": [
                {
                    "deposit": {
                        "depositId": "DEP-5",
                        "nickname": "Savings Plan",
                        "currency": "ILS",
                        "status": "ACTIVE",
                    },
                    "balances": {"currency": "ILS", "principalOutstanding": 20000.0, "accruedInterest": 450.0},
                    "features": {"maturityDate": "2026-06-30", "autoRenew": False},
                }
            ]
        },
        "metadata": {"schemaVersion": "1.0"},
    }
