# Generated manually for slotlist-backend

import uuid

import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='Community',
            fields=[
                ('uid', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('created_at', models.DateTimeField(auto_now_add=True, db_column='createdAt')),
                ('updated_at', models.DateTimeField(auto_now=True, db_column='updatedAt')),
                ('name', models.CharField(max_length=255)),
                ('tag', models.CharField(max_length=32)),
                ('slug', models.SlugField(max_length=255, unique=True)),
                ('website', models.CharField(blank=True, max_length=255, null=True)),
                ('logo_url', models.CharField(blank=True, db_column='logoUrl', max_length=1024, null=True)),
                ('game_servers', models.JSONField(blank=True, db_column='gameServers', default=list)),
                ('voice_comms', models.JSONField(blank=True, db_column='voiceComms', default=list)),
                ('repositories', models.JSONField(blank=True, default=list)),
            ],
            options={
                'db_table': 'communities',
                'ordering': ['name'],
            },
        ),
        migrations.CreateModel(
            name='User',
            fields=[
                ('uid', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('created_at', models.DateTimeField(auto_now_add=True, db_column='createdAt')),
                ('updated_at', models.DateTimeField(auto_now=True, db_column='updatedAt')),
                ('nickname', models.CharField(max_length=255)),
                ('steam_id', models.CharField(db_column='steamId', max_length=64, unique=True)),
                ('active', models.BooleanField(default=True)),
                ('community', models.ForeignKey(
                    blank=True,
                    db_column='communityUid',
                    null=True,
                    on_delete=django.db.models.deletion.SET_NULL,
                    related_name='members',
                    to='slotting.community',
                )),
            ],
            options={
                'db_table': 'users',
            },
        ),
        migrations.CreateModel(
            name='Permission',
            fields=[
                ('uid', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('created_at', models.DateTimeField(auto_now_add=True, db_column='createdAt')),
                ('updated_at', models.DateTimeField(auto_now=True, db_column='updatedAt')),
                ('permission', models.CharField(max_length=255)),
                ('user', models.ForeignKey(
                    db_column='userUid',
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name='permissions',
                    to='slotting.user',
                )),
            ],
            options={
                'db_table': 'permissions',
                'constraints': [
                    models.UniqueConstraint(fields=('user', 'permission'), name='permissions_unique_userUid_permission'),
                    models.CheckConstraint(condition=~models.Q(permission=''), name='permissions_permission_not_empty'),
                ],
            },
        ),
        migrations.CreateModel(
            name='CommunityApplication',
            fields=[
                ('uid', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('created_at', models.DateTimeField(auto_now_add=True, db_column='createdAt')),
                ('updated_at', models.DateTimeField(auto_now=True, db_column='updatedAt')),
                ('status', models.CharField(
                    choices=[('submitted', 'Submitted'), ('accepted', 'Accepted'), ('denied', 'Denied')],
                    default='submitted',
                    max_length=20,
                )),
                ('community', models.ForeignKey(
                    db_column='communityUid',
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name='applications',
                    to='slotting.community',
                )),
                ('user', models.ForeignKey(
                    db_column='userUid',
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name='community_applications',
                    to='slotting.user',
                )),
            ],
            options={
                'db_table': 'communityApplications',
                'constraints': [
                    models.UniqueConstraint(
                        fields=('user', 'community'),
                        name='communityApplications_unique_userUid_communityUid',
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name='Mission',
            fields=[
                ('uid', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('created_at', models.DateTimeField(auto_now_add=True, db_column='createdAt')),
                ('updated_at', models.DateTimeField(auto_now=True, db_column='updatedAt')),
                ('title', models.CharField(max_length=255)),
                ('slug', models.SlugField(max_length=255, unique=True)),
                ('description', models.TextField(blank=True, default='')),
                ('detailed_description', models.TextField(blank=True, db_column='detailedDescription', default='')),
                ('collapsed_description', models.TextField(blank=True, db_column='collapsedDescription', null=True)),
                ('banner_image_url', models.CharField(blank=True, db_column='bannerImageUrl', max_length=1024, null=True)),
                ('briefing_time', models.DateTimeField(db_column='briefingTime')),
                ('slotting_time', models.DateTimeField(db_column='slottingTime')),
                ('start_time', models.DateTimeField(db_column='startTime')),
                ('end_time', models.DateTimeField(db_column='endTime')),
                ('tech_support', models.TextField(blank=True, db_column='techSupport', null=True)),
                ('details_map', models.CharField(blank=True, db_column='detailsMap', max_length=255, null=True)),
                ('details_game_mode', models.CharField(blank=True, db_column='detailsGameMode', max_length=255, null=True)),
                ('rules', models.TextField(blank=True, null=True)),
                ('required_dlcs', models.JSONField(blank=True, db_column='requiredDLCs', default=list)),
                ('game_server', models.JSONField(blank=True, db_column='gameServer', null=True)),
                ('voice_comms', models.JSONField(blank=True, db_column='voiceComms', null=True)),
                ('repositories', models.JSONField(blank=True, default=list)),
                ('visibility', models.CharField(
                    choices=[('public', 'Public'), ('hidden', 'Hidden'), ('community', 'Community'), ('private', 'Private')],
                    default='hidden',
                    max_length=20,
                )),
                ('community', models.ForeignKey(
                    blank=True,
                    db_column='communityUid',
                    null=True,
                    on_delete=django.db.models.deletion.SET_NULL,
                    related_name='missions',
                    to='slotting.community',
                )),
                ('creator', models.ForeignKey(
                    db_column='creatorUid',
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name='missions',
                    to='slotting.user',
                )),
            ],
            options={
                'db_table': 'missions',
            },
        ),
        migrations.CreateModel(
            name='MissionSlotGroup',
            fields=[
                ('uid', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('created_at', models.DateTimeField(auto_now_add=True, db_column='createdAt')),
                ('updated_at', models.DateTimeField(auto_now=True, db_column='updatedAt')),
                ('title', models.CharField(max_length=255)),
                ('description', models.TextField(blank=True, null=True)),
                ('order_number', models.PositiveIntegerField(db_column='orderNumber', default=0)),
                ('mission', models.ForeignKey(
                    db_column='missionUid',
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name='slot_groups',
                    to='slotting.mission',
                )),
            ],
            options={
                'db_table': 'missionSlotGroups',
                'ordering': ['order_number'],
            },
        ),
        migrations.CreateModel(
            name='MissionSlot',
            fields=[
                ('uid', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('created_at', models.DateTimeField(auto_now_add=True, db_column='createdAt')),
                ('updated_at', models.DateTimeField(auto_now=True, db_column='updatedAt')),
                ('title', models.CharField(max_length=255)),
                ('order_number', models.PositiveIntegerField(db_column='orderNumber', default=0)),
                ('difficulty', models.PositiveSmallIntegerField(default=0)),
                ('description', models.CharField(blank=True, max_length=255, null=True)),
                ('detailed_description', models.TextField(blank=True, db_column='detailedDescription', null=True)),
                ('reserve', models.BooleanField(default=False)),
                ('blocked', models.BooleanField(default=False)),
                ('auto_assignable', models.BooleanField(db_column='autoAssignable', default=False)),
                ('required_dlcs', models.JSONField(blank=True, db_column='requiredDLCs', default=list)),
                ('external_assignee', models.CharField(blank=True, db_column='externalAssignee', max_length=255, null=True)),
                ('assignee', models.ForeignKey(
                    blank=True,
                    db_column='assigneeUid',
                    null=True,
                    on_delete=django.db.models.deletion.SET_NULL,
                    related_name='assigned_slots',
                    to='slotting.user',
                )),
                ('restricted_community', models.ForeignKey(
                    blank=True,
                    db_column='restrictedCommunityUid',
                    null=True,
                    on_delete=django.db.models.deletion.SET_NULL,
                    related_name='restricted_slots',
                    to='slotting.community',
                )),
                ('slot_group', models.ForeignKey(
                    db_column='slotGroupUid',
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name='slots',
                    to='slotting.missionslotgroup',
                )),
            ],
            options={
                'db_table': 'missionSlots',
                'ordering': ['order_number'],
                'constraints': [
                    models.UniqueConstraint(
                        fields=('slot_group', 'assignee'),
                        name='missionSlots_unique_slotGroupUid_assigneeUid',
                    ),
                    models.CheckConstraint(
                        condition=models.Q(('assignee__isnull', True), ('external_assignee__isnull', True), _connector='OR'),
                        name='missionSlots_assignee_xor_externalAssignee',
                    ),
                    models.CheckConstraint(
                        condition=models.Q(('difficulty__gte', 0), ('difficulty__lte', 4)),
                        name='missionSlots_difficulty_range',
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name='MissionSlotRegistration',
            fields=[
                ('uid', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('created_at', models.DateTimeField(auto_now_add=True, db_column='createdAt')),
                ('updated_at', models.DateTimeField(auto_now=True, db_column='updatedAt')),
                ('confirmed', models.BooleanField(default=False)),
                ('comment', models.TextField(blank=True, null=True)),
                ('slot', models.ForeignKey(
                    db_column='slotUid',
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name='registrations',
                    to='slotting.missionslot',
                )),
                ('user', models.ForeignKey(
                    db_column='userUid',
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name='slot_registrations',
                    to='slotting.user',
                )),
            ],
            options={
                'db_table': 'missionSlotRegistrations',
                'ordering': ['created_at'],
                'constraints': [
                    models.UniqueConstraint(
                        fields=('slot', 'user'),
                        name='missionSlotRegistrations_unique_slotUid_userUid',
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name='Notification',
            fields=[
                ('uid', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('created_at', models.DateTimeField(auto_now_add=True, db_column='createdAt')),
                ('updated_at', models.DateTimeField(auto_now=True, db_column='updatedAt')),
                ('notification_type', models.CharField(
                    choices=[
                        ('community.application.accepted', 'Community application accepted'),
                        ('community.application.denied', 'Community application denied'),
                        ('community.application.new', 'New community application'),
                        ('community.application.removed', 'Removed from community'),
                        ('community.permission.granted', 'Community permission granted'),
                        ('community.permission.revoked', 'Community permission revoked'),
                        ('generic', 'Generic'),
                        ('mission.deleted', 'Mission deleted'),
                        ('mission.permission.granted', 'Mission permission granted'),
                        ('mission.permission.revoked', 'Mission permission revoked'),
                        ('mission.slot.assigned', 'Mission slot assigned'),
                        ('mission.slot.registration.new', 'New mission slot registration'),
                        ('mission.slot.unassigned', 'Mission slot unassigned'),
                        ('mission.slot.unregistered', 'Mission slot registration removed'),
                    ],
                    db_column='notificationType',
                    default='generic',
                    max_length=64,
                )),
                ('title', models.CharField(blank=True, max_length=255, null=True)),
                ('message', models.TextField(blank=True, default='')),
                ('additional_data', models.JSONField(blank=True, db_column='additionalData', null=True)),
                ('read', models.BooleanField(default=False)),
                ('user', models.ForeignKey(
                    db_column='userUid',
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name='notifications',
                    to='slotting.user',
                )),
            ],
            options={
                'db_table': 'notifications',
                'ordering': ['-created_at'],
            },
        ),
    ]
