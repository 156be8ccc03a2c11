# Generated manually for slotlist-backend

import uuid

import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ('slotting', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='MissionAccess',
            fields=[
                ('uid', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('created_at', models.DateTimeField(auto_now_add=True, db_column='createdAt')),
                ('updated_at', models.DateTimeField(auto_now=True, db_column='updatedAt')),
                ('mission', models.ForeignKey(
                    db_column='missionUid',
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name='accesses',
                    to='slotting.mission',
                )),
                ('community', models.ForeignKey(
                    blank=True,
                    db_column='communityUid',
                    null=True,
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name='mission_accesses',
                    to='slotting.community',
                )),
                ('user', models.ForeignKey(
                    blank=True,
                    db_column='userUid',
                    null=True,
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name='mission_accesses',
                    to='slotting.user',
                )),
            ],
            options={
                'db_table': 'missionAccesses',
                'ordering': ['created_at'],
                'constraints': [
                    models.UniqueConstraint(
                        fields=('mission', 'community'),
                        name='missionAccesses_unique_missionUid_communityUid',
                    ),
                    models.UniqueConstraint(
                        fields=('mission', 'user'),
                        name='missionAccesses_unique_missionUid_userUid',
                    ),
                    models.CheckConstraint(
                        condition=models.Q(
                            models.Q(('community__isnull', False), ('user__isnull', True)),
                            models.Q(('community__isnull', True), ('user__isnull', False)),
                            _connector='OR',
                        ),
                        name='missionAccesses_community_xor_user',
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name='MissionSlotTemplate',
            fields=[
                ('uid', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('created_at', models.DateTimeField(auto_now_add=True, db_column='createdAt')),
                ('updated_at', models.DateTimeField(auto_now=True, db_column='updatedAt')),
                ('title', models.CharField(max_length=255)),
                ('slot_groups', models.JSONField(blank=True, db_column='slotGroups', default=list)),
                ('visibility', models.CharField(
                    choices=[('public', 'Public'), ('hidden', 'Hidden'), ('community', 'Community'), ('private', 'Private')],
                    default='hidden',
                    max_length=20,
                )),
                ('creator', models.ForeignKey(
                    db_column='creatorUid',
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name='slot_templates',
                    to='slotting.user',
                )),
            ],
            options={
                'db_table': 'missionSlotTemplates',
            },
        ),
        migrations.CreateModel(
            name='Announcement',
            fields=[
                ('uid', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('created_at', models.DateTimeField(auto_now_add=True, db_column='createdAt')),
                ('updated_at', models.DateTimeField(auto_now=True, db_column='updatedAt')),
                ('title', models.CharField(max_length=255)),
                ('content', models.TextField()),
                ('announcement_type', models.CharField(
                    choices=[('generic', 'Generic'), ('update', 'Update')],
                    db_column='announcementType',
                    default='generic',
                    max_length=20,
                )),
                ('visible_from', models.DateTimeField(blank=True, db_column='visibleFrom', null=True)),
                ('user', models.ForeignKey(
                    db_column='userUid',
                    on_delete=django.db.models.deletion.CASCADE,
                    related_name='announcements',
                    to='slotting.user',
                )),
            ],
            options={
                'db_table': 'announcements',
            },
        ),
        migrations.AlterField(
            model_name='notification',
            name='notification_type',
            field=models.CharField(
                choices=[
                    ('announcement.generic', 'Announcement'),
                    ('announcement.update', 'Update announcement'),
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
            ),
        ),
    ]
