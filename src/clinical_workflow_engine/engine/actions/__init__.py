"""Built-in action effectors.

Effectors build the outbound artefact for an action (notification, email,
care plan, task, ...) and hand delivery to an `Outbox`. Delivery channels
themselves (mail, paging, SMS) live outside the engine.
"""
