"""
Pet Lifecycle Module

Core of the shelter marketplace:
- Pet registry owning each pet's status and single active claim
- Adoption workflow (applications and shelter/admin decisions)
- Donation intake workflow (donor offers accepted or rejected by a shelter)
- Role-scoped authorization policy consulted before every mutation
"""
