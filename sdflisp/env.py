from .dsl import Expression, make_error


class Env:
    """
    A frame of lexical bindings with an optional parent frame.

    Lambdas hold a reference to the frame they were created in, so a frame
    lives as long as any closure or child frame that uses it.
    """
    def __init__(self, parent: 'Env' = None, allow_redefine: bool = True):
        self.parent = parent
        self.allow_redefine = allow_redefine
        self.values = {}

    def has(self, name: str, local: bool = False) -> bool:
        if name in self.values:
            return True
        if not local and self.parent is not None:
            return self.parent.has(name)
        return False

    def get(self, name: str):
        """Looks `name` up through the frame chain, returning None if unbound."""
        env = self
        while env is not None:
            if name in env.values:
                return env.values[name]
            env = env.parent
        return None

    def define(self, name: str, expr: Expression):
        """Binds `name` in this frame. Returns an error expression if redefinition is refused."""
        if not self.allow_redefine and name in self.values:
            return make_error(f"Cannot redefine '{name}'")
        self.values[name] = expr
        return None

    def set(self, name: str, expr: Expression):
        """Mutates the nearest enclosing binding of `name`, or binds it here if there is none."""
        env = self
        while env is not None:
            if name in env.values:
                if not env.allow_redefine:
                    return make_error(f"Cannot mutate value of '{name}'")
                env.values[name] = expr
                return None
            env = env.parent
        self.values[name] = expr
        return None

    def keys(self):
        names = set(self.values)
        if self.parent is not None:
            names.update(self.parent.keys())
        return names
