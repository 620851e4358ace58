"""Demo tenancy used by scripts/seed_demo.py: one service provider, one end
customer under contract, their users and robots.
(Data only; the script decides what already exists.)
"""

ORGANIZATIONS = [
    {'key': 'provider', 'name': 'Acme Robot Services', 'type': 'service_provider', 'contact_email': 'ops@acme-service.example'},
    {'key': 'customer', 'name': 'Northwind Manufacturing', 'type': 'end_customer', 'contact_email': 'maintenance@northwind.example'},
]

CONTRACTS = [
    ('provider', 'customer'),
]

# email, display name, role, org key
USERS = [
    ('admin@acme-service.example', 'Service Admin', 'service_admin', 'provider'),
    ('eng1@acme-service.example', 'Service Engineer One', 'service_engineer', 'provider'),
    ('eng2@acme-service.example', 'Service Engineer Two', 'service_engineer', 'provider'),
    ('admin@northwind.example', 'Customer Admin', 'end_admin', 'customer'),
    ('floor@northwind.example', 'Floor Engineer', 'end_engineer', 'customer'),
]

# sn, brand, model, owner key, provider key
ROBOTS = [
    ('NW-ARM-0001', 'Fanuc', 'M-20iD', 'customer', 'provider'),
    ('NW-ARM-0002', 'KUKA', 'KR 10 R1100', 'customer', 'provider'),
    ('NW-AGV-0001', 'MiR', 'MiR250', 'customer', 'provider'),
]
