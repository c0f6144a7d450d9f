"""
Services layer - Business logic goes here.

- classifier: AI routing of new issues (category, department, priority)
- notifications: event dispatch, stores, live feed
- channels: push and email delivery adapters
"""
