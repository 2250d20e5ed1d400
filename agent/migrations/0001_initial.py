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
            name='CareerConversation',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('title', models.CharField(blank=True, max_length=255)),
                ('messages', models.JSONField(blank=True, default=list)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='career_conversations', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'Career Conversation',
                'verbose_name_plural': 'Career Conversations',
                'ordering': ['-updated_at'],
            },
        ),
        migrations.CreateModel(
            name='AgentTurn',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('user_message', models.TextField()),
                ('reply', models.TextField(blank=True)),
                ('tool_results', models.JSONField(blank=True, default=list)),
                ('openai_run_id', models.CharField(blank=True, max_length=255)),
                ('token_usage', models.JSONField(blank=True, default=dict)),
                ('debug_log', models.TextField(blank=True)),
                ('error_message', models.TextField(blank=True)),
                ('status', models.CharField(choices=[('PENDING', 'Pending'), ('PROCESSING', 'Processing'), ('COMPLETED', 'Completed'), ('FAILED', 'Failed')], default='PENDING', max_length=20)),
                ('completed_at', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('conversation', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='turns', to='agent.careerconversation')),
            ],
            options={
                'verbose_name': 'Agent Turn',
                'verbose_name_plural': 'Agent Turns',
                'ordering': ['-created_at'],
                'indexes': [models.Index(fields=['status', 'created_at'], name='agent_turn_status_idx')],
            },
        ),
    ]
