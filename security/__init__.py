"""
security/ - Query Screening
===========================
Checks applied to SQL text before it is handed to the driver.
"""
