# Generated migration for the DocumentChunk model

from django.db import migrations, models
import django.db.models.deletion
import pgvector.django
import uuid


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('docs', '0001_initial'),
    ]

    operations = [
        pgvector.django.VectorExtension(),
        migrations.CreateModel(
            name='DocumentChunk',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('chunk_index', models.PositiveIntegerField(help_text='Index of this chunk within the document (0-based)')),
                ('content', models.TextField(help_text='The text content of this chunk')),
                ('token_start', models.PositiveIntegerField()),
                ('token_end', models.PositiveIntegerField()),
                ('page', models.PositiveIntegerField(blank=True, null=True)),
                ('embedding', pgvector.django.VectorField(dimensions=768, help_text='Vector embedding of the chunk content')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('document', models.ForeignKey(help_text='The source document', on_delete=django.db.models.deletion.CASCADE, related_name='chunks', to='docs.document')),
            ],
            options={
                'db_table': 'doc_chunks',
                'ordering': ['document', 'chunk_index'],
                'indexes': [models.Index(fields=['document', 'chunk_index'], name='doc_chunks_documen_7a1c2e_idx')],
                'constraints': [
                    models.UniqueConstraint(fields=('document', 'chunk_index'), name='unique_document_chunk'),
                    models.CheckConstraint(condition=models.Q(token_start__lt=models.F('token_end')), name='chunk_token_range_valid'),
                ],
            },
        ),
    ]
