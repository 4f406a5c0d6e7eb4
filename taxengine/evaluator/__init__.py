"""Slab tables, deduction rules, tax computation and regime comparison."""
