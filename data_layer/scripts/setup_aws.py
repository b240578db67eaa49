"""AWS altyapısını kurar.

Kullanım:
    python -m data_layer.scripts.setup_aws              # Kur
    python -m data_layer.scripts.setup_aws --delete     # Her şeyi sil
    python -m data_layer.scripts.setup_aws --region eu-west-1  # Farklı region
"""
import sys
import os

# Proje root'unu path'e ekle
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))))

from data_layer.infrastructure.dynamodb_setup import REGION, create_tables, delete_tables
from data_layer.infrastructure.s3_setup import create_bucket, delete_bucket


def main():
    region = REGION
    delete_mode = False

    # Argümanları parse et
    args = sys.argv[1:]
    for i, arg in enumerate(args):
        if arg == "--delete":
            delete_mode = True
        elif arg == "--region" and i + 1 < len(args):
            region = args[i + 1]

    if delete_mode:
        print("🗑️  AWS kaynakları siliniyor...\n")
        print("--- DynamoDB ---")
        delete_tables(region)
        print("\n--- S3 ---")
        delete_bucket(region)
        print("\n✅ Tüm kaynaklar silindi!")
        return

    print("=" * 60)
    print("🚀 AWS Altyapı Kurulumu - Eksik Ürün Talep Takibi")
    print(f"   Region: {region}")
    print("=" * 60)

    # 1. DynamoDB
    print("\n📊 ADIM 1: DynamoDB Tabloları")
    print("-" * 40)
    create_tables(region)

    # 2. S3
    print("\n📦 ADIM 2: S3 Bucket")
    print("-" * 40)
    bucket = create_bucket(region)

    print("\n" + "=" * 60)
    print("✅ Kurulum tamamlandı")
    print(f"   Export bucket: {bucket}")
    print("   .env dosyasına STOCKOUT_EXPORT_BUCKET olarak ekleyin")
    print("=" * 60)


if __name__ == "__main__":
    main()
