import uuid

from django.contrib.auth.models import (
    AbstractBaseUser,
    BaseUserManager,
    PermissionsMixin,
)
from django.db import models
from django.utils import timezone


class UserManager(BaseUserManager):
    """Custom manager for the User model that uses email as the unique identifier."""

    def create_user(self, email, password=None, **extra_fields):
        if not email:
            raise ValueError("L'adresse e-mail est obligatoire.")
        email = self.normalize_email(email)
        extra_fields.setdefault("is_active", True)
        user = self.model(email=email, **extra_fields)
        user.set_password(password)
        user.save(using=self._db)
        return user

    def create_superuser(self, email, password=None, **extra_fields):
        extra_fields.setdefault("role", User.Role.ADMIN)
        extra_fields.setdefault("is_staff", True)
        extra_fields.setdefault("is_superuser", True)

        if extra_fields.get("is_staff") is not True:
            raise ValueError("Le superutilisateur doit avoir is_staff=True.")
        if extra_fields.get("is_superuser") is not True:
            raise ValueError("Le superutilisateur doit avoir is_superuser=True.")

        return self.create_user(email, password, **extra_fields)

    def with_role(self, role):
        """Active employees holding ``role`` as primary or additional role."""
        return (
            self.filter(is_active=True)
            .filter(
                models.Q(role=role)
                | models.Q(extra_roles__role=role, extra_roles__is_active=True)
            )
            .distinct()
        )


class User(AbstractBaseUser, PermissionsMixin):
    """
    Clinic employee.

    Uses email as the unique identifier instead of a username. Besides the
    primary ``role``, an employee may hold additional roles through
    :class:`EmployeeRole` (a sales person who also coordinates visits, for
    instance). ``commission_count`` is a denormalized total of the
    commission ledger, bumped on every ledger write.
    """

    class Role(models.TextChoices):
        ADMIN = "ADMIN", "Administrateur"
        MANAGER = "MANAGER", "Gestionnaire"
        SALES = "SALES", "Commercial"
        COORDINATOR = "COORDINATOR", "Coordinateur"
        RECEPTIONIST = "RECEPTIONIST", "Accueil"
        DATA_ENTRY = "DATA_ENTRY", "Saisie"

    id = models.UUIDField(
        primary_key=True,
        default=uuid.uuid4,
        editable=False,
    )
    email = models.EmailField(
        "adresse e-mail",
        unique=True,
        error_messages={
            "unique": "Un utilisateur avec cette adresse e-mail existe deja.",
        },
    )
    first_name = models.CharField("prenom", max_length=150)
    last_name = models.CharField("nom", max_length=150)
    phone = models.CharField("telephone", max_length=30, blank=True, default="")
    role = models.CharField(
        "role",
        max_length=20,
        choices=Role.choices,
        default=Role.SALES,
        db_index=True,
    )
    commission_count = models.IntegerField("nb commissions", default=0)
    is_active = models.BooleanField("actif", default=True, db_index=True)
    is_staff = models.BooleanField("membre du personnel", default=False)
    date_joined = models.DateTimeField("date d'inscription", default=timezone.now)

    objects = UserManager()

    USERNAME_FIELD = "email"
    REQUIRED_FIELDS = ["first_name", "last_name"]

    class Meta:
        verbose_name = "employe"
        verbose_name_plural = "employes"
        ordering = ["last_name", "first_name"]

    def __str__(self):
        return self.get_full_name() or self.email

    def get_full_name(self):
        full_name = f"{self.first_name} {self.last_name}".strip()
        return full_name

    def get_short_name(self):
        return self.first_name

    # ------------------------------------------------------------------
    # Role helpers
    # ------------------------------------------------------------------

    def role_codes(self) -> set:
        codes = {self.role}
        codes.update(
            self.extra_roles.filter(is_active=True).values_list("role", flat=True)
        )
        return codes

    def has_role(self, role) -> bool:
        if self.role == role:
            return True
        if not self.pk:
            return False
        return self.extra_roles.filter(role=role, is_active=True).exists()

    @property
    def is_admin(self):
        return self.role == self.Role.ADMIN

    @property
    def is_manager(self):
        return self.role == self.Role.MANAGER

    @property
    def is_sales(self):
        return self.has_role(self.Role.SALES)

    @property
    def is_coordinator(self):
        return self.has_role(self.Role.COORDINATOR)

    @property
    def role_display(self):
        return self.get_role_display()

    @property
    def display_name(self) -> str:
        """Full name, prefixed by the team name while the employee leads one."""
        from teams.models import Team

        team_name = (
            Team.objects.filter(leader_id=self.pk, is_active=True)
            .order_by("created_at")
            .values_list("name", flat=True)
            .first()
        )
        full_name = self.get_full_name() or self.email
        if team_name:
            return f"{team_name} {full_name}"
        return full_name


class EmployeeRole(models.Model):
    """Additional role granted to an employee on top of ``User.role``."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name="extra_roles",
        verbose_name="employe",
    )
    role = models.CharField("role", max_length=20, choices=User.Role.choices)
    is_active = models.BooleanField("actif", default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["role"]
        verbose_name = "role supplementaire"
        verbose_name_plural = "roles supplementaires"
        constraints = [
            models.UniqueConstraint(
                fields=["user", "role"],
                name="uniq_employee_role",
            ),
        ]

    def __str__(self):
        return f"{self.user} - {self.get_role_display()}"
