# Initial schema for generated credential audit records

import uuid

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='GeneratedCredential',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('entity_type', models.CharField(choices=[('teacher', 'Teacher'), ('student', 'Student'), ('parent', 'Parent')], max_length=20)),
                ('entity_id', models.UUIDField()),
                ('temporary_password', models.TextField(blank=True, null=True)),
                ('sent_via', models.CharField(blank=True, choices=[('email', 'Email'), ('manual', 'Manual')], default='manual', max_length=20, null=True)),
                ('sent_at', models.DateTimeField(blank=True, null=True)),
                ('first_login_at', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='issued_credentials', to=settings.AUTH_USER_MODEL)),
                ('user', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='generated_credentials', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'generated_credentials',
                'ordering': ['-created_at'],
                'indexes': [models.Index(fields=['entity_type', 'entity_id'], name='gen_creds_entity_idx')],
            },
        ),
    ]
