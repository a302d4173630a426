"""Parsing, execution and assertion services."""

from apitester.services.engine import APITestEngine
from apitester.services.http_client import APIHttpClient, ResponseRecord
from apitester.services.parser import DefinitionParser, ParsedDefinitions
from apitester.services.assertion_engine import AssertionEngine

__all__ = [
    "APITestEngine",
    "APIHttpClient",
    "ResponseRecord",
    "DefinitionParser",
    "ParsedDefinitions",
    "AssertionEngine",
]
