"""Synthetic data generators for demo portfolios."""

from microfin.generators.loan import LoanGenerator
from microfin.generators.member import GroupGenerator, MemberGenerator

__all__ = ["GroupGenerator", "LoanGenerator", "MemberGenerator"]
