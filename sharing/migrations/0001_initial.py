import uuid

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('timeline', '0001_initial'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='NodePolicy',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('level', models.CharField(choices=[('overview', 'Overview'), ('full', 'Full')], default='overview', max_length=10)),
                ('action', models.CharField(choices=[('view', 'View'), ('edit', 'Edit')], default='view', max_length=10)),
                ('subject_type', models.CharField(choices=[('user', 'User'), ('org', 'Organization'), ('public', 'Public')], max_length=10)),
                ('subject_id', models.IntegerField(blank=True, null=True)),
                ('effect', models.CharField(choices=[('ALLOW', 'Allow'), ('DENY', 'Deny')], default='ALLOW', max_length=5)),
                ('expires_at', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('granted_by', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='granted_policies', to=settings.AUTH_USER_MODEL)),
                ('node', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='policies', to='timeline.timelinenode')),
            ],
            options={
                'verbose_name': 'Node Policy',
                'verbose_name_plural': 'Node Policies',
                'ordering': ['created_at'],
                'indexes': [
                    models.Index(fields=['node', 'action', 'level'], name='policy_node_lookup_idx'),
                    models.Index(fields=['subject_type', 'subject_id'], name='policy_subject_idx'),
                    models.Index(fields=['expires_at'], name='policy_expiry_idx'),
                ],
            },
        ),
    ]
