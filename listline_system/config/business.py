# listline_system/config/business.py
"""
Listline business constants.
Fixed simulation knobs; tunable parameters live in SimulationConfig.
"""
from decimal import Decimal

# Listline geometry
LISTLINE_DEPTH = 3          # ancestors captured per listline
MAX_REGISTRATION_DEPTH = 3  # deepest level a generated member may land on
MAX_VIEW_DEPTH = 3          # deepest level that receives link views

# Views
MAX_SITE_VIEWS_PER_TICK = 3
MAX_NODE_VIEWS_PER_TICK = 5
UNIQUE_VIEW_RATIO = Decimal("0.7")
MIN_CLICK_RATIO = 0.1
MAX_CLICK_RATIO = 0.5

# Dashboards
TOP_LIST_SIZE = 10

# Currency (display only)
CURRENCY_SYMBOL = "€"

FIRST_NAMES = (
    'Anna', 'Bob', 'Carol', 'Dave', 'Eve', 'Frank', 'Grace', 'Henry',
    'Ivy', 'Jack', 'Kate', 'Leo', 'Mia', 'Nick', 'Olivia', 'Pete',
    'Quinn', 'Rose', 'Sam', 'Tina', 'Uma', 'Victor', 'Wendy', 'Xavier',
    'Yuki', 'Zara', 'Adam', 'Bella', 'Chris', 'Diana', 'Eli', 'Fiona',
    'Gus', 'Hana', 'Ivan', 'Jill', 'Kurt', 'Luna', 'Max', 'Nora',
    'Emma', 'Liam', 'Sophia', 'Noah', 'Ava', 'Ethan', 'Isabella', 'Mason',
    'Camila', 'Daniel', 'Gianna', 'Matthew', 'Penelope', 'Sebastian', 'Aria',
    'David', 'Riley', 'Joseph', 'Zoey', 'Carter',
)
