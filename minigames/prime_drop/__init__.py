"""Prime Drop: catch falling primes to push a running value up to the target.

The physics (integration, collision detection) is pymunk's; this package owns the game rules.
"""
