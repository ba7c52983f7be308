# Generated migration for the Document model

from django.db import migrations, models
import uuid


class Migration(migrations.Migration):

    initial = True

    dependencies = [
    ]

    operations = [
        migrations.CreateModel(
            name='Document',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('owner_user_id', models.CharField(db_index=True, help_text='ID of the user who uploaded the document', max_length=255)),
                ('title', models.CharField(help_text='Original filename, shown in citations', max_length=255)),
                ('mime_type', models.CharField(help_text='MIME type of the file', max_length=100)),
                ('size_bytes', models.PositiveIntegerField(default=0, help_text='File size in bytes')),
                ('storage_path', models.CharField(help_text='Path to file on disk (relative to upload root)', max_length=500)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
            ],
            options={
                'db_table': 'documents',
                'ordering': ['-created_at'],
            },
        ),
        migrations.AddIndex(
            model_name='document',
            index=models.Index(fields=['owner_user_id', 'created_at'], name='documents_owner_u_5af79c_idx'),
        ),
    ]
