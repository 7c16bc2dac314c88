"""Services that sit on top of the models (email, reminders, exports)."""
