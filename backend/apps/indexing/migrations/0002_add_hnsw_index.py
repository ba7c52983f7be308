"""
Migration to add an HNSW index on doc_chunks.embedding for cosine search.

The retriever orders by the <=> (cosine distance) operator, so the index uses
vector_cosine_ops.
"""
from django.db import migrations


class Migration(migrations.Migration):

    dependencies = [
        ('indexing', '0001_initial'),
    ]

    operations = [
        migrations.RunSQL(
            sql="""
                CREATE INDEX IF NOT EXISTS doc_chunks_embedding_hnsw_idx
                ON doc_chunks
                USING hnsw (embedding vector_cosine_ops)
                WITH (m = 16, ef_construction = 64);
            """,
            reverse_sql="DROP INDEX IF EXISTS doc_chunks_embedding_hnsw_idx;"
        ),
    ]
