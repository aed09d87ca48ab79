import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        ("confreg_conference", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Abstract",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("first_name", models.CharField(max_length=100)),
                ("last_name", models.CharField(max_length=100)),
                ("email", models.EmailField(max_length=254)),
                ("affiliation", models.CharField(max_length=300)),
                ("country", models.CharField(max_length=100)),
                ("phone", models.CharField(blank=True, default="", max_length=50)),
                ("title", models.CharField(max_length=500)),
                (
                    "category",
                    models.CharField(
                        choices=[
                            ("clinical_pharmacy", "Clinical Pharmacy"),
                            ("social_administrative", "Social and Administrative Pharmacy"),
                            ("community_pharmacy", "Community Pharmacy"),
                            ("pharmacology_toxicology", "Pharmacology and Toxicology"),
                            ("pharmacy_education", "Pharmacy Education"),
                            ("digital_pharmacy", "Digital Pharmacy"),
                        ],
                        max_length=30,
                    ),
                ),
                (
                    "presentation_type",
                    models.CharField(choices=[("oral", "Oral"), ("poster", "Poster")], max_length=10),
                ),
                ("keywords", models.CharField(max_length=500)),
                ("background", models.TextField()),
                ("methods", models.TextField()),
                ("results", models.TextField()),
                ("conclusion", models.TextField()),
                ("full_paper_url", models.URLField(blank=True, default="", max_length=500)),
                (
                    "status",
                    models.CharField(
                        choices=[("pending", "Pending"), ("accepted", "Accepted"), ("rejected", "Rejected")],
                        default="pending",
                        max_length=20,
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "event",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="abstracts",
                        to="confreg_conference.event",
                    ),
                ),
                (
                    "user",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="abstracts",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
            },
        ),
        migrations.CreateModel(
            name="CoAuthor",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("position", models.PositiveSmallIntegerField(default=0)),
                ("first_name", models.CharField(max_length=100)),
                ("last_name", models.CharField(max_length=100)),
                ("email", models.EmailField(max_length=254)),
                ("institution", models.CharField(max_length=300)),
                ("country", models.CharField(max_length=100)),
                (
                    "abstract",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="co_authors",
                        to="confreg_abstracts.abstract",
                    ),
                ),
            ],
            options={
                "ordering": ["position", "id"],
                "constraints": [
                    models.UniqueConstraint(fields=("abstract", "position"), name="confreg_unique_coauthor_position"),
                ],
            },
        ),
        migrations.CreateModel(
            name="AbstractReview",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "decision",
                    models.CharField(
                        choices=[("pending", "Pending"), ("accepted", "Accepted"), ("rejected", "Rejected")],
                        max_length=20,
                    ),
                ),
                ("comment", models.TextField(blank=True, default="")),
                ("reviewed_at", models.DateTimeField(auto_now_add=True)),
                (
                    "abstract",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="reviews",
                        to="confreg_abstracts.abstract",
                    ),
                ),
                (
                    "reviewer",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="+",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ["-reviewed_at", "-id"],
            },
        ),
    ]
