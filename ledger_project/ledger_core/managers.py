from django.db import models
from django.contrib.auth.base_user import BaseUserManager

# -----------------------------------------
# Enforce tenant scoping across all models 
# that belong to a company 
# -----------------------------------------
class TenantQuerySet(models.QuerySet):  
    def for_company(self, company):         # Add queryset helper
        return self.filter(company=company) # Apply filter

    def active(self, company):      
        return self.filter( 
                            company=company, # enforce tenant scoping
                            is_active=True   # only fetch active records
                        ) 
    # Enables query: 
    # RecurringProfile.objects.active(request.company)

    def posted(self, company):
        # JournalEntry only: rows that made it into the ledger
        return self.filter(company=company, status="posted")


# Attach TenantQuerySet to .objects
class TenantManager(BaseUserManager): # BaseUserManager so the custom User can share it
   
    def get_queryset(self): # ensure every model gets TenantQuerySet(so .for_company() is always available)
        return TenantQuerySet(self.model, using=self._db)

    def for_company(self, company): # can call for_company() directly on objects
        return self.get_queryset().for_company(company)
    
    def active(self, company):
        return self.get_queryset().active(company)

    def posted(self, company):
        return self.get_queryset().posted(company)

    """ Enforce rules around how users are created """

    use_in_migrations = True # Allow Django to serialize this manager in migrations

    # Private helper used by both `create_user` and `create_superuser`
    def _create_user(self, username, email, password, **extra_fields):
        if not username: # Username is required
            raise ValueError("The given username must be set")
        email = self.normalize_email(email) # Email is normalized (lowercased domain part)
        user = self.model(username=username, email=email, **extra_fields)
        user.set_password(password) # Password is hashed 
        user.save(using=self._db)
        return user

    def create_user(self, username, email=None, password=None, **extra_fields):
        extra_fields.setdefault("is_staff", False)
        extra_fields.setdefault("is_superuser", False)
        return self._create_user(username, email, password, **extra_fields)
    
    # Used by Django when running `createsuperuser`
    def create_superuser(self, username, email=None, password=None, **extra_fields):
        extra_fields.setdefault("is_staff", True)
        extra_fields.setdefault("is_superuser", True)
        # You cannot pass conflicting values
        if extra_fields.get("is_staff") is not True or extra_fields.get("is_superuser") is not True:
            raise ValueError("Superuser must have is_staff=True and is_superuser=True")
        return self._create_user(username, email, password, **extra_fields)
