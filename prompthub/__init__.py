"""PromptHub — discover, validate, execute and compose prompt assets."""

__version__ = "1.0.0"
