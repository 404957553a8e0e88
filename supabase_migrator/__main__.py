from supabase_migrator.cli.main import main

main()
