"""Resolver package — unwrap aggregator links to publisher URLs."""

from newsreader.resolver.models import ResolutionResult, StrategyHit
from newsreader.resolver.resolver import Resolver
from newsreader.resolver.strategies import STRATEGIES, ResolveTimeout, Strategy

__all__ = ["Resolver", "ResolutionResult", "ResolveTimeout", "STRATEGIES", "Strategy", "StrategyHit"]
