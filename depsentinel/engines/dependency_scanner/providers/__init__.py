"""Ecosystem providers — one per supported package-manager universe."""

from depsentinel.engines.dependency_scanner.providers.base import EcosystemProvider
from depsentinel.engines.dependency_scanner.providers.go import GoProvider
from depsentinel.engines.dependency_scanner.providers.node import NodeProvider
from depsentinel.engines.dependency_scanner.providers.python import PipProvider, PoetryProvider

__all__ = ["EcosystemProvider", "GoProvider", "NodeProvider", "PipProvider", "PoetryProvider"]
