from therapy_modules.services.seeding import seed_content

__all__ = ["seed_content"]
