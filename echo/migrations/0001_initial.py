from django.conf import settings
from django.db import migrations, models
import django.db.models.deletion


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='QuietNote',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('text', models.TextField(help_text='The echo itself (length bound comes from ECHO settings)')),
                ('is_read', models.BooleanField(default=False)),
                ('invite_sent', models.BooleanField(default=False, help_text='Set once a response invite has been derived from this note')),
                ('created_at', models.DateTimeField(db_index=True)),
                ('recipient', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='quiet_notes_received', to=settings.AUTH_USER_MODEL)),
                ('sender', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='quiet_notes_sent', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'Quiet Note',
                'verbose_name_plural': 'Quiet Notes',
                'ordering': ['-created_at', '-id'],
            },
        ),
        migrations.CreateModel(
            name='ResponseInvite',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('message', models.CharField(max_length=150)),
                ('status', models.CharField(choices=[('pending', 'Pending'), ('accepted', 'Accepted'), ('declined', 'Declined'), ('expired', 'Expired')], db_index=True, default='pending', max_length=10)),
                ('created_at', models.DateTimeField()),
                ('expires_at', models.DateTimeField(db_index=True)),
                ('responded_at', models.DateTimeField(blank=True, null=True)),
                ('quiet_note', models.OneToOneField(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='response_invite', to='echo.quietnote')),
                ('recipient', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='response_invites_received', to=settings.AUTH_USER_MODEL)),
                ('sender', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='response_invites_sent', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'Response Invite',
                'verbose_name_plural': 'Response Invites',
                'ordering': ['-created_at', '-id'],
            },
        ),
        migrations.CreateModel(
            name='LimitedChat',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('pair_low', models.BigIntegerField(editable=False)),
                ('pair_high', models.BigIntegerField(editable=False)),
                ('status', models.CharField(choices=[('active', 'Active'), ('expired', 'Expired'), ('completed', 'Completed'), ('archived', 'Archived')], db_index=True, default='active', max_length=10)),
                ('created_at', models.DateTimeField(db_index=True)),
                ('expires_at', models.DateTimeField(db_index=True)),
                ('daily_message_limit', models.PositiveIntegerField()),
                ('character_limit', models.PositiveIntegerField()),
                ('message_pace_hours', models.PositiveIntegerField(default=0)),
                ('message_count', models.PositiveIntegerField(default=0)),
                ('last_message_date', models.DateField(blank=True, null=True)),
                ('can_complete_connection', models.BooleanField(default=False)),
                ('connection_completion_available_at', models.DateTimeField()),
                ('single_thread_enforced', models.BooleanField(default=True)),
                ('completed_at', models.DateTimeField(blank=True, null=True)),
                ('archived_at', models.DateTimeField(blank=True, null=True)),
                ('response_invite', models.OneToOneField(on_delete=django.db.models.deletion.PROTECT, related_name='limited_chat', to='echo.responseinvite')),
                ('user1', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='limited_chats_as_user1', to=settings.AUTH_USER_MODEL)),
                ('user2', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='limited_chats_as_user2', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'Limited Chat',
                'verbose_name_plural': 'Limited Chats',
                'ordering': ['-created_at', '-id'],
            },
        ),
        migrations.CreateModel(
            name='LimitedMessage',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('text', models.TextField()),
                ('character_count', models.PositiveIntegerField()),
                ('is_read', models.BooleanField(default=False)),
                ('created_at', models.DateTimeField()),
                ('chat', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='messages', to='echo.limitedchat')),
                ('sender', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='limited_messages_sent', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'Limited Message',
                'verbose_name_plural': 'Limited Messages',
                'ordering': ['created_at', 'id'],
            },
        ),
        migrations.CreateModel(
            name='DailyMessageCounter',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('date', models.DateField()),
                ('count', models.PositiveIntegerField(default=0)),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='daily_message_counters', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'Daily Message Counter',
                'verbose_name_plural': 'Daily Message Counters',
                'ordering': ['-date'],
            },
        ),
        migrations.AddField(
            model_name='responseinvite',
            name='rekindled_from',
            field=models.OneToOneField(blank=True, help_text='Set when this invite restarts the cycle for an older chat', null=True, on_delete=django.db.models.deletion.PROTECT, related_name='rekindle_invite', to='echo.limitedchat'),
        ),
        migrations.AddIndex(
            model_name='quietnote',
            index=models.Index(fields=['recipient', 'created_at'], name='note_recipient_created_idx'),
        ),
        migrations.AddConstraint(
            model_name='responseinvite',
            constraint=models.CheckConstraint(condition=models.Q(('quiet_note__isnull', False), ('rekindled_from__isnull', False), _connector='OR'), name='invite_has_origin'),
        ),
        migrations.AddConstraint(
            model_name='limitedchat',
            constraint=models.UniqueConstraint(condition=models.Q(('status', 'active'), ('single_thread_enforced', True)), fields=('pair_low', 'pair_high'), name='one_active_chat_per_pair'),
        ),
        migrations.AddIndex(
            model_name='limitedchat',
            index=models.Index(fields=['status', 'expires_at'], name='chat_status_expires_idx'),
        ),
        migrations.AddIndex(
            model_name='limitedmessage',
            index=models.Index(fields=['chat', 'sender', 'created_at'], name='msg_chat_sender_created_idx'),
        ),
        migrations.AddConstraint(
            model_name='dailymessagecounter',
            constraint=models.UniqueConstraint(fields=('user', 'date'), name='unique_user_day_counter'),
        ),
    ]
