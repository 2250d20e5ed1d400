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
            name='TimelineNode',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('type', models.CharField(choices=[('job', 'Job'), ('education', 'Education'), ('project', 'Project'), ('event', 'Event'), ('action', 'Action'), ('careerTransition', 'Career Transition')], max_length=32)),
                ('meta', models.JSONField(blank=True, default=dict)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('parent', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='children', to='timeline.timelinenode')),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='timeline_nodes', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'Timeline Node',
                'verbose_name_plural': 'Timeline Nodes',
                'ordering': ['created_at'],
                'indexes': [
                    models.Index(fields=['user', 'type'], name='timeline_user_type_idx'),
                    models.Index(fields=['user', 'parent'], name='timeline_user_parent_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='NodeInsight',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('description', models.TextField(max_length=2000)),
                ('resources', models.JSONField(blank=True, default=list)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('node', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='insights', to='timeline.timelinenode')),
            ],
            options={
                'verbose_name': 'Node Insight',
                'verbose_name_plural': 'Node Insights',
                'ordering': ['-created_at'],
            },
        ),
    ]
