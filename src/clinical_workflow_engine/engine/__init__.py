"""Rules engine components.

- Settings loaded from .env
- Structured logging
- Rule model, evaluation and execution (`rules`)
- Built-in action effectors (`actions`)
"""
