"""Back-office core for small car-rental companies: fleet, clients, rentals,
booking requests and the cash ledger, one tenant per owner account."""
