"""Scenarios for seeding realistic microfinance portfolios."""

from microfin.scenarios.portfolio import PortfolioScenario

__all__ = ["PortfolioScenario"]
