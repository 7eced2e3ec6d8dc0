"""
POS Bootstrap - Errors
======================
"""


class SystemBootstrapError(Exception):
    """
    The procedure host was wired wrong: a procedure has no handler,
    a handler answers to an unknown name, or the store cannot read a
    table. The host refuses to serve once this is raised.
    """

    def __init__(self, invariant: str, detail: str):
        super().__init__(f"Procedure host failed startup check {invariant}: {detail}")
        self.invariant = invariant
        self.detail = detail
