"""
Facilities module.

- Facility CRUD, owner-scoped
- Storage unit CRUD under an owned facility
- Public vacant-unit browsing and site statistics
"""
