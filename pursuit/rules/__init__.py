"""Game rules: phases, movement, obstacles, cards, effects and scoring.

Every public function here takes a loaded `GameSession`, validates, and
mutates it in memory. Locking and committing are the caller's job
(see `pursuit.actions`).
"""
